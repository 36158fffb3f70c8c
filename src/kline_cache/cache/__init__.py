"""Cache orchestration for kline-cache."""

from kline_cache.cache.coverage import CoverageAnalyzer
from kline_cache.cache.manager import CacheManager

__all__ = [
    "CacheManager",
    "CoverageAnalyzer",
]
