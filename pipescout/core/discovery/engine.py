from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..config import DiscoveryConfig
from ..models import ORIGIN_GENERATED, ORIGIN_SEARCH, CandidateURL
from .fallback import generate_fallback_urls

logger = logging.getLogger(__name__)


class Searcher(Protocol):
    def search(self, entity: str) -> List[str]: ...


class DiscoveryEngine:
    """Ranked, deduplicated, capped candidate URLs for one entity."""

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        searcher: Optional[Searcher] = None,
    ) -> None:
        self.config = config or DiscoveryConfig()
        self.searcher = searcher

    def _search(self, entity: str) -> List[str]:
        if self.searcher is None:
            return []
        try:
            return list(self.searcher.search(entity))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Search failed for %r: %s", entity, exc)
            return []

    def discover(self, entity: str) -> List[CandidateURL]:
        if not entity or not entity.strip():
            return []
        found = self._search(entity)
        proposed: List[tuple[str, str]] = [(url, ORIGIN_SEARCH) for url in found]
        found_count = len({url.strip() for url in found if url and url.strip()})
        if found_count < self.config.min_search_results:
            logger.info(
                "Only %d search URLs for %r; adding fallback URLs", found_count, entity
            )
            proposed.extend(
                (url, ORIGIN_GENERATED)
                for url in generate_fallback_urls(
                    entity,
                    self.config.fallback_paths,
                    self.config.known_domains,
                )
            )

        candidates: List[CandidateURL] = []
        seen: set[str] = set()
        for url, origin in proposed:
            key = url.strip()
            if not key or key in seen:
                continue
            seen.add(key)
            candidates.append(CandidateURL(url=key, origin=origin, rank=len(candidates)))
            if len(candidates) >= self.config.max_candidates:
                break
        logger.info("Discovery for %r: %d candidate URLs", entity, len(candidates))
        for cand in candidates:
            logger.debug("  %d. [%s] %s", cand.rank + 1, cand.origin, cand.url)
        return candidates
