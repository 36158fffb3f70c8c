"""Year-sharded candle cache backed by paginated exchange APIs."""

from kline_cache.cache import CacheManager, CoverageAnalyzer
from kline_cache.config import Settings
from kline_cache.data import BinanceFetcher, CCXTFetcher, SourceRegistry
from kline_cache.factory import create_cache_manager
from kline_cache.models import Candle, CoverageGap, CoverageResult, Timeframe
from kline_cache.storage import LocalDirectory, ShardStore

__version__ = "0.1.0"

__all__ = [
    "BinanceFetcher",
    "CCXTFetcher",
    "CacheManager",
    "Candle",
    "CoverageAnalyzer",
    "CoverageGap",
    "CoverageResult",
    "LocalDirectory",
    "Settings",
    "ShardStore",
    "SourceRegistry",
    "Timeframe",
    "create_cache_manager",
]
