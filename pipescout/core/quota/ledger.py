from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..errors import QuotaPersistenceError

logger = logging.getLogger(__name__)

MINUTE_WINDOW_SEC = 60.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class DailyWindow:
    date: str = ""  # YYYY-MM-DD, local calendar day
    request_count: int = 0
    estimated_cost_usd: float = 0.0
    last_reset: str = ""

    def reset(self, today: str) -> None:
        self.date = today
        self.request_count = 0
        self.estimated_cost_usd = 0.0
        self.last_reset = _now_iso()


@dataclass(slots=True)
class SessionWindow:
    request_count: int = 0
    started_at: str = field(default_factory=_now_iso)


@dataclass(slots=True)
class MinuteWindow:
    timestamps: List[float] = field(default_factory=list)

    def prune(self, now: float) -> None:
        cutoff = now - MINUTE_WINDOW_SEC
        self.timestamps = [ts for ts in self.timestamps if ts > cutoff]


@dataclass(slots=True)
class QuotaLedger:
    version: int = 1
    daily: DailyWindow = field(default_factory=DailyWindow)
    session: SessionWindow = field(default_factory=SessionWindow)
    minute: MinuteWindow = field(default_factory=MinuteWindow)
    last_updated: str = ""

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "daily": {
                "date": self.daily.date,
                "request_count": self.daily.request_count,
                "estimated_cost_usd": round(self.daily.estimated_cost_usd, 6),
                "last_reset": self.daily.last_reset,
            },
            "session": {
                "request_count": self.session.request_count,
                "started_at": self.session.started_at,
            },
            "minute": {"timestamps": list(self.minute.timestamps)},
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuotaLedger":
        ledger = cls()
        ledger.version = int(data.get("version", 1))
        daily = data.get("daily", {}) or {}
        ledger.daily = DailyWindow(
            date=str(daily.get("date", "")),
            request_count=max(0, int(daily.get("request_count", 0))),
            estimated_cost_usd=max(0.0, float(daily.get("estimated_cost_usd", 0.0))),
            last_reset=str(daily.get("last_reset", "")),
        )
        session = data.get("session", {}) or {}
        ledger.session = SessionWindow(
            request_count=max(0, int(session.get("request_count", 0))),
            started_at=str(session.get("started_at", "")) or _now_iso(),
        )
        minute = data.get("minute", {}) or {}
        ledger.minute = MinuteWindow(
            timestamps=sorted(float(ts) for ts in minute.get("timestamps", []) or [])
        )
        ledger.last_updated = str(data.get("last_updated", ""))
        return ledger


class LedgerStore:
    """Where a QuotaLedger lives between process runs."""

    def load(self) -> Optional[QuotaLedger]:
        raise NotImplementedError

    def save(self, ledger: QuotaLedger) -> None:
        raise NotImplementedError


class InMemoryLedgerStore(LedgerStore):
    def __init__(self, ledger: Optional[QuotaLedger] = None) -> None:
        self._payload = ledger.to_dict() if ledger is not None else None
        self.saves = 0

    def load(self) -> Optional[QuotaLedger]:
        if self._payload is None:
            return None
        return QuotaLedger.from_dict(self._payload)

    def save(self, ledger: QuotaLedger) -> None:
        self._payload = ledger.to_dict()
        self.saves += 1

    @property
    def payload(self) -> Optional[dict]:
        return self._payload


class JsonLedgerStore(LedgerStore):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[QuotaLedger]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return QuotaLedger.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Unreadable quota ledger %s (%s); starting fresh", self.path, exc)
            return None

    def save(self, ledger: QuotaLedger) -> None:
        ledger.last_updated = _now_iso()
        payload = json.dumps(ledger.to_dict(), ensure_ascii=False, indent=2)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise QuotaPersistenceError(
                f"Could not write quota ledger to {self.path}: {exc}"
            ) from exc
