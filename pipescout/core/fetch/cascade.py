from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from ..errors import AcquisitionError, FailureKind
from ..models import AcquisitionResult
from .fetcher import LightweightFetcher
from .renderer import RenderedFetcher

logger = logging.getLogger(__name__)


class CascadeState(str, Enum):
    TIER1_ATTEMPTED = "tier1_attempted"
    SUFFICIENT = "sufficient"
    ESCALATE = "escalate"
    TIER2_ATTEMPTED = "tier2_attempted"
    SUCCESS = "success"
    FAILED = "failed"


class AcquisitionCascade:
    """Fetch one URL cheaply, escalating once to a rendered browser fetch.

    Per URL the states run::

        TIER1_ATTEMPTED -> SUFFICIENT
                        -> ESCALATE -> TIER2_ATTEMPTED -> SUCCESS | FAILED

    Neither tier is ever retried against itself.
    """

    def __init__(
        self,
        lightweight: LightweightFetcher,
        rendered: RenderedFetcher,
        *,
        sufficient_chars: int = 2000,
    ) -> None:
        self.lightweight = lightweight
        self.rendered = rendered
        self.sufficient_chars = sufficient_chars

    def acquire(self, url: str) -> AcquisitionResult:
        trace: List[str] = [CascadeState.TIER1_ATTEMPTED.value]
        tier1_error: Optional[AcquisitionError] = None
        try:
            content = self.lightweight.fetch(url)
        except AcquisitionError as exc:
            tier1_error = exc
            content = ""
        except Exception as exc:  # noqa: BLE001
            tier1_error = AcquisitionError(
                FailureKind.UNKNOWN, url, str(exc), tier=self.lightweight.method
            )
            content = ""

        if tier1_error is None and len(content) >= self.sufficient_chars:
            trace.append(CascadeState.SUFFICIENT.value)
            logger.info("Lightweight fetch sufficient for %s (%d chars)", url, len(content))
            return AcquisitionResult(
                url=url, content=content, method=self.lightweight.method, trace=trace
            )

        trace.append(CascadeState.ESCALATE.value)
        if tier1_error is not None:
            logger.info(
                "Lightweight fetch failed for %s (%s); escalating to browser",
                url,
                tier1_error.kind.value,
            )
        else:
            logger.info(
                "Lightweight fetch thin for %s (%d chars); escalating to browser",
                url,
                len(content),
            )

        trace.append(CascadeState.TIER2_ATTEMPTED.value)
        try:
            rendered = self.rendered.fetch(url)
        except AcquisitionError as exc:
            trace.append(CascadeState.FAILED.value)
            exc.trace = trace
            raise
        except Exception as exc:  # noqa: BLE001
            trace.append(CascadeState.FAILED.value)
            err = AcquisitionError(
                FailureKind.UNKNOWN,
                url,
                f"Rendering failed for {url}: {exc}",
                tier=self.rendered.method,
            )
            err.trace = trace
            raise err from exc

        trace.append(CascadeState.SUCCESS.value)
        return AcquisitionResult(
            url=url, content=rendered, method=self.rendered.method, trace=trace
        )
