"""Models for kline-cache."""

from kline_cache.models.candle import (
    Candle,
    ShardFile,
    StoredCandles,
    Timeframe,
    candles_to_frame,
    filter_candles,
    normalize_candles,
)
from kline_cache.models.coverage import CoverageGap, CoverageResult

__all__ = [
    # Candle
    "Candle",
    "ShardFile",
    "StoredCandles",
    "Timeframe",
    "candles_to_frame",
    "filter_candles",
    "normalize_candles",
    # Coverage
    "CoverageGap",
    "CoverageResult",
]
