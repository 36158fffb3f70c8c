"""Remote candle sources for kline-cache."""

from kline_cache.data.fetchers.base import BaseFetcher
from kline_cache.data.fetchers.binance_fetcher import BinanceFetcher
from kline_cache.data.fetchers.ccxt_fetcher import CCXTFetcher
from kline_cache.data.registry import (
    DataSource,
    SourceOption,
    SourceRegistry,
    build_data_source_id,
    parse_data_source_id,
)

__all__ = [
    "BaseFetcher",
    "BinanceFetcher",
    "CCXTFetcher",
    "DataSource",
    "SourceOption",
    "SourceRegistry",
    "build_data_source_id",
    "parse_data_source_id",
]
