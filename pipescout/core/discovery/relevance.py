"""Relevance heuristics for search-result anchors.

Kept free of any network or browser code so the rules can be exercised on
plain strings.
"""

from __future__ import annotations

from typing import Iterable, Sequence
from urllib.parse import urlparse

from ..utils import bare_host, entity_tokens

PIPELINE_KEYWORDS = (
    "pipeline",
    "clinical",
    "research",
    "development",
    "drug",
    "product",
    "innovation",
    "science",
    "therapy",
    "pharmaceutical",
)

MIN_TOKEN_LEN = 3

SCORE_REJECT = 0
SCORE_KEYWORD_AND_TEXT = 1
SCORE_DOMAIN = 2


def significant_tokens(entity: str) -> list[str]:
    return [tok for tok in entity_tokens(entity) if len(tok) >= MIN_TOKEN_LEN]


def domain_matches(url: str, tokens: Iterable[str]) -> bool:
    host = bare_host(url)
    if not host:
        return False
    label = host.split(".")[0]
    for token in tokens:
        if token in host:
            return True
        if len(label) >= MIN_TOKEN_LEN and label in token:
            return True
    return False


def has_pipeline_keyword(url: str, text: str) -> bool:
    path = urlparse(url).path.lower()
    text_l = (text or "").lower()
    return any(kw in path or kw in text_l for kw in PIPELINE_KEYWORDS)


def text_mentions(text: str, tokens: Sequence[str]) -> bool:
    text_l = (text or "").lower()
    return any(token in text_l for token in tokens)


def score_anchor(url: str, text: str, entity: str) -> int:
    tokens = significant_tokens(entity)
    if not tokens:
        return SCORE_REJECT
    if domain_matches(url, tokens):
        return SCORE_DOMAIN
    if has_pipeline_keyword(url, text) and text_mentions(text, tokens):
        return SCORE_KEYWORD_AND_TEXT
    return SCORE_REJECT


def is_relevant(url: str, text: str, entity: str) -> bool:
    return score_anchor(url, text, entity) > SCORE_REJECT
