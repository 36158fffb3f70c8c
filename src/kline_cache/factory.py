"""Build a ready-to-use CacheManager from settings."""

import logging

from kline_cache.cache import CacheManager, CoverageAnalyzer
from kline_cache.config import Settings
from kline_cache.data import BinanceFetcher, CCXTFetcher, SourceRegistry
from kline_cache.storage import LocalDirectory, ShardStore

logger = logging.getLogger(__name__)


def create_registry(settings: Settings) -> SourceRegistry:
    """Register Binance plus one CCXT fetcher per configured exchange."""
    registry = SourceRegistry(symbols=settings.symbols)
    registry.register(
        "binance",
        BinanceFetcher(
            base_url=settings.binance_base_url,
            max_page_size=settings.max_page_size,
            max_pages=settings.max_pages,
            timeout=settings.request_timeout,
        ),
        label="Binance",
    )
    for exchange_id in settings.ccxt_exchanges:
        registry.register(
            exchange_id,
            CCXTFetcher(
                exchange_id,
                max_page_size=settings.max_page_size,
                max_pages=settings.max_pages,
            ),
            label=exchange_id.upper(),
        )
    return registry


def create_cache_manager(settings: Settings | None = None) -> CacheManager:
    """Wire registry, shard store and coverage analyzer into a CacheManager.

    Without ``settings.data_dir`` the manager runs remote-only.
    """
    settings = settings or Settings()
    directory = LocalDirectory(settings.data_dir) if settings.data_dir else None
    if directory is None:
        logger.warning("No data_dir configured, candles will not be persisted")

    store = ShardStore(
        directory,
        legacy_data_source=settings.legacy_data_source,
        clear_years=(settings.clear_start_year, settings.clear_end_year),
    )
    analyzer = CoverageAnalyzer(
        min_coverage_ratio=settings.min_coverage_ratio,
        max_gap_periods=settings.max_gap_periods,
    )
    return CacheManager(
        create_registry(settings),
        store=store,
        analyzer=analyzer,
        default_data_source=settings.default_data_source,
        latest_limit=settings.latest_default_limit,
    )
