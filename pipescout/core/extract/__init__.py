from .client import PipelineExtractor

__all__ = ["PipelineExtractor"]
