from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import parse_qsl, urljoin, urlparse

SOCIAL_DOMAINS = {
    "facebook.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "youtube.com",
    "instagram.com",
    "wikipedia.org",
}

_TOKEN_SPLIT = re.compile(r"[\s,/]+")


def entity_tokens(name: str) -> List[str]:
    """Lower-cased whitespace tokens of an entity name, in order."""
    return [tok for tok in _TOKEN_SPLIT.split(name.strip().lower()) if tok]


def host_of(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    host = (parsed.hostname or "").lower()
    return host


def bare_host(url: str) -> str:
    host = host_of(url)
    if host.startswith("www."):
        host = host[4:]
    return host


def host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def is_social(url: str) -> bool:
    host = host_of(url)
    return any(host_matches(host, domain) for domain in SOCIAL_DOMAINS)


def unwrap_redirect(
    href: str,
    base_url: str,
    redirect_param: Optional[str],
    own_domain: Optional[str] = None,
) -> Optional[str]:
    """Resolve a result-page href to the absolute http(s) target it points at.

    Search engines wrap outbound links (``/l/?uddg=<encoded>`` or
    ``/url?q=<encoded>``); the wrapped target wins over the wrapper itself.
    With ``own_domain`` set, only links on that engine's host are unwrapped.
    """
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return None
    lowered = href.lower()
    if lowered.startswith(("javascript:", "mailto:", "tel:", "data:")):
        return None
    absolute = urljoin(base_url, href)
    parsed = urlparse(absolute)
    unwrap = redirect_param and parsed.query
    if unwrap and own_domain:
        unwrap = host_matches((parsed.hostname or "").lower(), own_domain)
    if unwrap:
        for key, value in parse_qsl(parsed.query, keep_blank_values=True):
            if key == redirect_param and value:
                target = value.strip()
                if target.startswith(("http://", "https://")):
                    return target
    if parsed.scheme not in {"http", "https"}:
        return None
    return absolute


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()
