from __future__ import annotations

import logging
import re
from typing import Optional

import requests
from bs4 import BeautifulSoup, Tag

from ..config import FetchConfig
from ..errors import AcquisitionError, FailureKind, classify_exception, classify_http_status
from ..models import METHOD_LIGHTWEIGHT
from ..utils import collapse_whitespace

logger = logging.getLogger(__name__)

NOISE_TAGS = (
    "script",
    "style",
    "noscript",
    "template",
    "iframe",
    "svg",
    "nav",
    "header",
    "footer",
)
NOISE_SELECTORS = (
    ".cookie-banner",
    ".advertisement",
    "[id*='cookie']",
    "[class*='cookie']",
    "[class*='consent']",
    "[id*='onetrust']",
    "[class*='advert']",
    ".ad-container",
    ".ads",
)
# Never stripped by a noise selector, nor is anything wrapping main content
PROTECTED_TAGS = ("html", "body", "main")


def _is_page_container(el: Tag, page_len: int) -> bool:
    if el.name in PROTECTED_TAGS or el.find("main") is not None:
        return True
    return page_len > 0 and len(el.get_text()) > page_len / 2


def strip_boilerplate(html: str) -> str:
    """Visible body text with scripts, chrome and ad/cookie furniture removed."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(list(NOISE_TAGS)):
        tag.decompose()
    page_len = len((soup.body or soup).get_text())
    for selector in NOISE_SELECTORS:
        for el in soup.select(selector):
            if el.decomposed or _is_page_container(el, page_len):
                continue
            el.decompose()
    root = soup.body or soup
    return collapse_whitespace(root.get_text(" "))


class LightweightFetcher:
    method = METHOD_LIGHTWEIGHT

    def __init__(
        self,
        session: requests.Session,
        config: FetchConfig | None = None,
    ) -> None:
        self.session = session
        self.config = config or FetchConfig()
        self.session.max_redirects = self.config.max_redirects

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/webp,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.9",
            "Upgrade-Insecure-Requests": "1",
        }

    def _decode_bytes(
        self,
        body: bytes,
        content_type: Optional[str],
        apparent: Optional[str] = None,
    ) -> str:
        header_enc: Optional[str] = None
        if content_type and "charset=" in content_type.lower():
            header_enc = content_type.lower().split("charset=")[-1].split(";")[0].strip()

        meta_enc: Optional[str] = None
        m = re.search(rb"charset\s*=\s*[\"']?([A-Za-z0-9_\-]+)", body[:4096], re.I)
        if m:
            meta_enc = m.group(1).decode("ascii", errors="ignore").lower()

        for enc in (header_enc, meta_enc, apparent, "utf-8"):
            if not enc:
                continue
            try:
                return body.decode(enc, errors="strict")
            except (LookupError, UnicodeDecodeError):
                continue
        return body.decode("utf-8", errors="replace")

    def fetch(self, url: str) -> str:
        try:
            response = self.session.get(
                url,
                headers=self._headers(),
                timeout=self.config.timeout_sec,
                allow_redirects=True,
            )
        except requests.TooManyRedirects as exc:
            raise AcquisitionError(
                FailureKind.UNKNOWN, url, f"Too many redirects: {url}", tier=self.method
            ) from exc
        except requests.RequestException as exc:
            kind = classify_exception(exc)
            raise AcquisitionError(
                kind, url, f"{kind.value}: {url} ({exc})", tier=self.method
            ) from exc

        status = response.status_code
        if not 200 <= status < 400:
            kind = classify_http_status(status)
            raise AcquisitionError(kind, url, f"HTTP {status}: {url}", tier=self.method)

        html = self._decode_bytes(
            response.content,
            response.headers.get("Content-Type"),
            getattr(response, "apparent_encoding", None),
        )
        text = strip_boilerplate(html)
        logger.debug("Lightweight fetch %s -> %d chars", url, len(text))
        return text
