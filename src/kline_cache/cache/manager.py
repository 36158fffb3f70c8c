"""Candle cache orchestrator: local shards first, remote fetch for what is missing."""

import logging

import pandas as pd

from kline_cache.cache.coverage import CoverageAnalyzer
from kline_cache.data.registry import SourceRegistry
from kline_cache.exceptions import RemoteApiError
from kline_cache.models import (
    Candle,
    Timeframe,
    candles_to_frame,
    filter_candles,
    normalize_candles,
)
from kline_cache.storage.directory import Directory
from kline_cache.storage.shard_store import ShardStore

logger = logging.getLogger(__name__)

DEFAULT_DATA_SOURCE = "binance-btc"


class CacheManager:
    """Entry point for candle requests.

    Serves candles from the shard store when it covers the requested window
    and fetches only the missing ranges otherwise. Fetched candles are
    persisted before being returned.

    Not safe for concurrent ``get``/``update_latest`` calls on the same
    (timeframe, data source id); different keys never interfere.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        store: ShardStore | None = None,
        analyzer: CoverageAnalyzer | None = None,
        default_data_source: str = DEFAULT_DATA_SOURCE,
        latest_limit: int = 100,
    ) -> None:
        """Initialize the manager.

        Args:
            registry: Registry resolving data source ids to fetchers.
            store: Shard store. Defaults to one without a directory (remote only).
            analyzer: Coverage analyzer. Defaults to the standard thresholds.
            default_data_source: Id used when callers do not pass one.
            latest_limit: Default candle count for ``update_latest``.
        """
        self.registry = registry
        self.store = store if store is not None else ShardStore()
        self.analyzer = analyzer if analyzer is not None else CoverageAnalyzer()
        self.default_data_source = default_data_source
        self.latest_limit = latest_limit

    def use_directory(self, directory: Directory | None) -> None:
        """Point the store at a new storage directory (None for remote-only)."""
        self.store.use_directory(directory)

    async def get(
        self,
        timeframe: Timeframe | str,
        start: int,
        end: int,
        data_source_id: str | None = None,
    ) -> list[Candle]:
        """Return candles for ``[start, end]``, fetching whatever is missing.

        The data source id is resolved before the store is touched, so an id
        whose source is no longer registered fails with ``UnknownSource`` even
        when its window is fully cached.

        Args:
            timeframe: Candle timeframe.
            start: Window start in UTC seconds (inclusive).
            end: Window end in UTC seconds (inclusive).
            data_source_id: ``source-symbol`` id, e.g. 'binance-btc'.

        Returns:
            Candles inside the window, sorted by time.

        Raises:
            ValueError: If ``start`` is after ``end``.
            InvalidIdFormat: If the data source id is malformed.
            UnknownSource: If no fetcher serves the id's source.
            RemoteApiError: If nothing is stored and the remote fetch fails.
        """
        timeframe = Timeframe.parse(timeframe)
        data_source_id = data_source_id or self.default_data_source
        if start > end:
            raise ValueError(f"start ({start}) must not be after end ({end})")
        fetcher, symbol = self.registry.fetcher_for(data_source_id)

        stored = await self.store.read(timeframe, data_source_id, start, end)
        if stored is None or not stored.candles:
            logger.info(
                f"No local {timeframe.value} data for {data_source_id}, "
                f"fetching [{start}, {end}]"
            )
            candles = await fetcher.fetch(timeframe, symbol, start, end)
            await self.store.write(timeframe, data_source_id, candles)
            return filter_candles(normalize_candles(candles), start, end)

        coverage = self.analyzer.check(stored.candles, start, end, timeframe)
        if coverage.sufficient:
            return filter_candles(stored.candles, start, end)

        logger.info(
            f"Local {timeframe.value} data for {data_source_id} has "
            f"{len(coverage.gaps)} gap(s), fetching missing ranges"
        )
        fetched: list[Candle] = []
        for gap in coverage.gaps:
            try:
                fetched.extend(await fetcher.fetch(timeframe, symbol, gap.start, gap.end))
            except RemoteApiError as e:
                logger.warning(
                    f"Failed to fill gap [{gap.start}, {gap.end}] for {data_source_id}: {e}"
                )

        if fetched:
            await self.store.merge(timeframe, data_source_id, fetched)
            updated = await self.store.read(timeframe, data_source_id, start, end)
            if updated is not None:
                return filter_candles(updated.candles, start, end)
            # Store went away between merge and re-read
            return filter_candles(normalize_candles([*stored.candles, *fetched]), start, end)

        logger.warning(f"No new candles fetched for {data_source_id}, returning stale data")
        return filter_candles(stored.candles, start, end)

    async def get_default(
        self,
        timeframe: Timeframe | str,
        end: int | None = None,
        data_source_id: str | None = None,
    ) -> list[Candle]:
        """Return candles for the timeframe's default lookup window ending at ``end``."""
        timeframe = Timeframe.parse(timeframe)
        start, end = timeframe.default_range(end)
        return await self.get(timeframe, start, end, data_source_id)

    async def get_frame(
        self,
        timeframe: Timeframe | str,
        start: int,
        end: int,
        data_source_id: str | None = None,
    ) -> pd.DataFrame:
        """Same as ``get`` but returns a DataFrame (time, open, high, low, close)."""
        return candles_to_frame(await self.get(timeframe, start, end, data_source_id))

    async def update_latest(
        self,
        timeframe: Timeframe | str,
        limit: int | None = None,
        data_source_id: str | None = None,
    ) -> int:
        """Best-effort refresh of the most recent candles.

        Errors are logged and swallowed.

        Returns:
            Number of candles merged into the store (0 on failure).
        """
        data_source_id = data_source_id or self.default_data_source
        try:
            timeframe = Timeframe.parse(timeframe)
            fetcher, symbol = self.registry.fetcher_for(data_source_id)
            candles = await fetcher.fetch_latest(
                symbol, timeframe, limit if limit is not None else self.latest_limit
            )
            await self.store.merge(timeframe, data_source_id, candles)
        except Exception as e:
            logger.error(f"Failed to update latest kline data for {timeframe}: {e}")
            return 0
        return len(candles)

    async def clear_cache(
        self, timeframe: Timeframe | str, data_source_id: str | None = None
    ) -> int:
        """Delete every stored shard of ``timeframe`` for the data source.

        Returns:
            Number of files deleted.
        """
        return await self.store.clear(timeframe, data_source_id or self.default_data_source)
