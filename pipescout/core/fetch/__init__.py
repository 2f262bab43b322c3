from .cascade import AcquisitionCascade, CascadeState
from .fetcher import LightweightFetcher
from .renderer import RenderedFetcher

__all__ = ["AcquisitionCascade", "CascadeState", "LightweightFetcher", "RenderedFetcher"]
