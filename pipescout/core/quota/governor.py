from __future__ import annotations

import logging
import math
import time
from datetime import date
from typing import Any, Callable, Dict

from ..config import QuotaConfig
from ..models import QuotaDecision
from .ledger import MINUTE_WINDOW_SEC, LedgerStore, QuotaLedger, SessionWindow

logger = logging.getLogger(__name__)

LIMIT_DAILY_REQUESTS = "daily_requests"
LIMIT_DAILY_COST = "daily_cost"
LIMIT_SESSION_REQUESTS = "session_requests"
LIMIT_MINUTE_RATE = "minute_rate"

USAGE_LOG_EVERY = 10


class QuotaGovernor:
    """Gate and account for calls to the metered extraction service.

    The governor is the only writer of its ledger. Limits are evaluated in a
    fixed order (daily requests, daily cost, session requests, per-minute
    rate) and only the per-minute denial is ever waited out; the other three
    need a new day or a new process.

    ``check`` followed by ``record`` is not guarded by a lock: callers run
    strictly sequentially. Parallel callers must serialise the pair.
    """

    def __init__(
        self,
        config: QuotaConfig,
        store: LedgerStore,
        *,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.store = store
        self._clock = clock
        self._today = today
        self._sleep = sleep
        self.ledger = store.load() or QuotaLedger()
        # A fresh governor is a fresh session whatever the file says
        self.ledger.session = SessionWindow()
        self._rollover()
        self.ledger.minute.prune(self._clock())

    def _today_key(self) -> str:
        return self._today().isoformat()

    def _rollover(self) -> bool:
        today = self._today_key()
        if self.ledger.daily.date != today:
            if self.ledger.daily.date:
                logger.info(
                    "New quota day %s (was %s, %d requests); daily window reset",
                    today,
                    self.ledger.daily.date,
                    self.ledger.daily.request_count,
                )
            self.ledger.daily.reset(today)
            return True
        return False

    def _refresh(self) -> None:
        if self._rollover():
            self.store.save(self.ledger)
        self.ledger.minute.prune(self._clock())

    def estimate_cost(self, input_units: int, output_units: int) -> float:
        return (max(0, input_units) / 1000.0) * self.config.input_cost_per_1k + (
            max(0, output_units) / 1000.0
        ) * self.config.output_cost_per_1k

    def _snapshot(self) -> Dict[str, Any]:
        daily = self.ledger.daily
        session = self.ledger.session
        in_window = len(self.ledger.minute.timestamps)
        cfg = self.config
        return {
            "daily": {
                "date": daily.date,
                "requests": daily.request_count,
                "limit": cfg.requests_per_day,
                "remaining": cfg.requests_per_day - daily.request_count,
                "estimated_cost_usd": round(daily.estimated_cost_usd, 4),
                "cost_limit_usd": cfg.cost_per_day_usd,
            },
            "session": {
                "requests": session.request_count,
                "limit": cfg.requests_per_session,
                "remaining": cfg.requests_per_session - session.request_count,
                "started_at": session.started_at,
            },
            "minute_window": {
                "requests": in_window,
                "limit": cfg.requests_per_minute,
                "remaining": cfg.requests_per_minute - in_window,
            },
            "limits": {
                "requests_per_minute": cfg.requests_per_minute,
                "requests_per_day": cfg.requests_per_day,
                "requests_per_session": cfg.requests_per_session,
                "cost_per_day_usd": cfg.cost_per_day_usd,
            },
        }

    def _minute_wait_seconds(self) -> int:
        timestamps = self.ledger.minute.timestamps
        if not timestamps:
            return 0
        remaining = MINUTE_WINDOW_SEC - (self._clock() - min(timestamps))
        return max(1, math.ceil(remaining))

    def check(self) -> QuotaDecision:
        self._refresh()
        cfg = self.config
        daily = self.ledger.daily
        session = self.ledger.session
        snapshot = self._snapshot()

        if daily.request_count >= cfg.requests_per_day:
            return QuotaDecision(
                allowed=False,
                snapshot=snapshot,
                limit=LIMIT_DAILY_REQUESTS,
                reason=(
                    f"Daily request limit reached: "
                    f"{daily.request_count}/{cfg.requests_per_day}"
                ),
            )
        if daily.estimated_cost_usd >= cfg.cost_per_day_usd:
            return QuotaDecision(
                allowed=False,
                snapshot=snapshot,
                limit=LIMIT_DAILY_COST,
                reason=(
                    f"Daily cost limit reached: "
                    f"${daily.estimated_cost_usd:.4f}/{cfg.cost_per_day_usd} USD"
                ),
            )
        if session.request_count >= cfg.requests_per_session:
            return QuotaDecision(
                allowed=False,
                snapshot=snapshot,
                limit=LIMIT_SESSION_REQUESTS,
                reason=(
                    f"Session request limit reached: "
                    f"{session.request_count}/{cfg.requests_per_session}"
                ),
            )
        in_window = len(self.ledger.minute.timestamps)
        if in_window >= cfg.requests_per_minute:
            wait = self._minute_wait_seconds()
            return QuotaDecision(
                allowed=False,
                snapshot=snapshot,
                limit=LIMIT_MINUTE_RATE,
                wait_seconds=wait,
                reason=(
                    f"Rate limit: {in_window}/{cfg.requests_per_minute} requests "
                    f"per minute, wait {wait}s"
                ),
            )
        return QuotaDecision(allowed=True, snapshot=snapshot)

    def record(self, input_units: int = 0, output_units: int = 0) -> Dict[str, Any]:
        self._refresh()
        self.ledger.minute.timestamps.append(self._clock())
        self.ledger.daily.request_count += 1
        self.ledger.session.request_count += 1
        self.ledger.daily.estimated_cost_usd += self.estimate_cost(
            input_units, output_units
        )
        self.store.save(self.ledger)
        if self.ledger.daily.request_count % USAGE_LOG_EVERY == 0:
            logger.info(
                "Extraction usage: %d/%d daily requests | $%.4f USD",
                self.ledger.daily.request_count,
                self.config.requests_per_day,
                self.ledger.daily.estimated_cost_usd,
            )
        return self._snapshot()

    def await_capacity(self) -> QuotaDecision:
        decision = self.check()
        if not decision.allowed and decision.limit == LIMIT_MINUTE_RATE:
            wait = decision.wait_seconds or 0
            logger.info("Per-minute quota reached; waiting %ss", wait)
            if wait > 0:
                self._sleep(wait)
            self.ledger.minute.prune(self._clock())
            return self.check()
        return decision

    def stats(self) -> Dict[str, Any]:
        self._refresh()
        return self._snapshot()

    def reset_session(self) -> None:
        self.ledger.session = SessionWindow()
        self.store.save(self.ledger)
        logger.info("Quota session counters reset")

    def describe(self) -> str:
        cfg = self.config
        return (
            f"{cfg.requests_per_minute}/min, {cfg.requests_per_day}/day, "
            f"{cfg.requests_per_session}/session, ${cfg.cost_per_day_usd}/day"
        )
