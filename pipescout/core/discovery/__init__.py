from .engine import DiscoveryEngine
from .search import SearchHarvester

__all__ = ["DiscoveryEngine", "SearchHarvester"]
