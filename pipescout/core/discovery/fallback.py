from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ..utils import entity_tokens

logger = logging.getLogger(__name__)

KNOWN_DOMAINS: Dict[str, str] = {
    "pfizer": "pfizer.com",
    "novartis": "novartis.com",
    "roche": "roche.com",
    "johnson & johnson": "jnj.com",
    "merck": "merck.com",
    "gsk": "gsk.com",
    "glaxosmithkline": "gsk.com",
    "astrazeneca": "astrazeneca.com",
    "sanofi": "sanofi.com",
    "bayer": "bayer.com",
    "bristol myers squibb": "bms.com",
    "bms": "bms.com",
    "abbvie": "abbvie.com",
    "amgen": "amgen.com",
    "gilead": "gilead.com",
    "eli lilly": "lilly.com",
    "lilly": "lilly.com",
    "boehringer ingelheim": "boehringer-ingelheim.com",
    "takeda": "takeda.com",
    "biogen": "biogen.com",
    "regeneron": "regeneron.com",
    "moderna": "modernatx.com",
    "biontech": "biontech.com",
}

DEFAULT_PATHS = ("/pipeline", "/science/pipeline")


def resolve_domain(
    entity: str, extra_domains: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """Known domain for an entity: exact, then partial match, then ``<first>.com``."""
    table: Dict[str, str] = dict(KNOWN_DOMAINS)
    if extra_domains:
        table.update({k.lower(): v for k, v in extra_domains.items()})
    name = " ".join(entity.strip().lower().split())
    if not name:
        return None
    if name in table:
        return table[name]
    for key, domain in table.items():
        if key in name or (len(name) >= 3 and name in key):
            return domain
    tokens = entity_tokens(name)
    return f"{tokens[0]}.com" if tokens else None


def generate_fallback_urls(
    entity: str,
    paths: Sequence[str] = DEFAULT_PATHS,
    extra_domains: Optional[Mapping[str, str]] = None,
) -> List[str]:
    domain = resolve_domain(entity, extra_domains)
    if not domain:
        logger.info("No fallback domain for %r", entity)
        return []
    host = domain if domain.startswith("www.") else f"www.{domain}"
    urls = [f"https://{host}/{path.lstrip('/')}" for path in paths]
    logger.info("Generated %d fallback URLs for %r on %s", len(urls), entity, host)
    return urls
