from __future__ import annotations

import socket
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

import requests
from selenium.common.exceptions import TimeoutException, WebDriverException

if TYPE_CHECKING:
    from .models import QuotaDecision


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    DNS_NOT_FOUND = "dns_not_found"
    CONNECTION_REFUSED = "connection_refused"
    HTTP_FORBIDDEN = "http_forbidden"
    HTTP_NOT_FOUND = "http_not_found"
    HTTP_RATE_LIMITED = "http_rate_limited"
    HTTP_SERVER_ERROR = "http_server_error"
    TOO_SHORT = "too_short"
    UNKNOWN = "unknown"


class AcquisitionError(Exception):
    """A single URL could not be turned into usable text."""

    def __init__(
        self,
        kind: FailureKind,
        url: str,
        message: str = "",
        tier: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.url = url
        self.tier = tier
        self.trace: List[str] = []
        super().__init__(message or f"{kind.value}: {url}")


class ExtractionServiceError(Exception):
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    INSUFFICIENT_QUOTA = "insufficient_quota"
    MALFORMED = "malformed"
    API = "api"

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> None:
        self.kind = kind
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        super().__init__(message)

    @property
    def exhausts_capacity(self) -> bool:
        return self.kind == self.INSUFFICIENT_QUOTA


class QuotaExhaustedError(Exception):
    def __init__(self, decision: "QuotaDecision") -> None:
        self.decision = decision
        super().__init__(decision.reason or "quota exhausted")


class QuotaPersistenceError(Exception):
    pass


_DNS_MARKERS = (
    "err_name_not_resolved",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "failed to resolve",
    "nameresolutionerror",
)
_REFUSED_MARKERS = ("err_connection_refused", "connection refused")
_TIMEOUT_MARKERS = ("err_timed_out", "timed out", "timeout")


def classify_http_status(status: int) -> FailureKind:
    if status == 403:
        return FailureKind.HTTP_FORBIDDEN
    if status == 404:
        return FailureKind.HTTP_NOT_FOUND
    if status == 429:
        return FailureKind.HTTP_RATE_LIMITED
    if status >= 500:
        return FailureKind.HTTP_SERVER_ERROR
    return FailureKind.UNKNOWN


def _classify_message(message: str) -> FailureKind:
    lowered = message.lower()
    if any(marker in lowered for marker in _DNS_MARKERS):
        return FailureKind.DNS_NOT_FOUND
    if any(marker in lowered for marker in _REFUSED_MARKERS):
        return FailureKind.CONNECTION_REFUSED
    if any(marker in lowered for marker in _TIMEOUT_MARKERS):
        return FailureKind.TIMEOUT
    return FailureKind.UNKNOWN


def classify_exception(exc: BaseException) -> FailureKind:
    """Map a requests/selenium/socket exception onto a FailureKind."""
    if isinstance(exc, AcquisitionError):
        return exc.kind
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return classify_http_status(exc.response.status_code)
    if isinstance(exc, (requests.Timeout, TimeoutException, socket.timeout)):
        return FailureKind.TIMEOUT
    if isinstance(exc, socket.gaierror):
        return FailureKind.DNS_NOT_FOUND
    if isinstance(exc, ConnectionRefusedError):
        return FailureKind.CONNECTION_REFUSED
    if isinstance(exc, (requests.ConnectionError, WebDriverException)):
        return _classify_message(str(exc))
    return _classify_message(str(exc))
