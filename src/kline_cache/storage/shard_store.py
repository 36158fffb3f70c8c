"""Year-sharded JSON persistence for candles.

Each shard holds every candle of one (timeframe, data source id, UTC year)
triple in a file named ``kline_{timeframe}_{data_source_id}_{year}.json``.
Files written before sharding existed (``kline_{timeframe}.json``) are still
readable through the legacy path but are never written.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import ValidationError

from kline_cache.exceptions import EntryNotFound, MalformedShard, StorageUnavailable
from kline_cache.models import Candle, ShardFile, StoredCandles, Timeframe, normalize_candles
from kline_cache.storage.directory import Directory

logger = logging.getLogger(__name__)


def year_of(timestamp: int) -> int:
    """UTC calendar year of a timestamp in seconds."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).year


class ShardStore:
    """Reads, writes and merges candle shards in a storage directory.

    The directory is an explicit storage context: pass it at construction or
    swap it later with ``use_directory``. Without one, reads return None and
    writes are skipped.

    Callers must not run two ``merge`` calls for the same (timeframe, id)
    concurrently; shards are not locked.
    """

    def __init__(
        self,
        directory: Directory | None = None,
        legacy_data_source: str | None = "binance-btc",
        clear_years: tuple[int, int] = (2000, 2100),
    ):
        """Initialize the store.

        Args:
            directory: Storage directory, or None when no backend is configured.
            legacy_data_source: The only data source id whose reads may fall
                back to the pre-sharding single file. None disables the fallback.
            clear_years: Inclusive year range swept by ``clear``.
        """
        self.directory = directory
        self.legacy_data_source = legacy_data_source.lower() if legacy_data_source else None
        self.clear_years = clear_years

    def use_directory(self, directory: Directory | None) -> None:
        self.directory = directory

    @staticmethod
    def years_spanning(start: int, end: int) -> list[int]:
        """Every UTC year touched by ``[start, end]``, inclusive."""
        return list(range(year_of(start), year_of(end) + 1))

    @staticmethod
    def shard_name(timeframe: Timeframe | str, data_source_id: str, year: int) -> str:
        return f"kline_{Timeframe.parse(timeframe).value}_{data_source_id}_{year}.json"

    @staticmethod
    def legacy_name(timeframe: Timeframe | str) -> str:
        return f"kline_{Timeframe.parse(timeframe).value}.json"

    async def read(
        self,
        timeframe: Timeframe | str,
        data_source_id: str,
        start: int | None = None,
        end: int | None = None,
    ) -> StoredCandles | None:
        """Load candles for every year touched by ``[start, end]``.

        Without a range only the current UTC year is read. Missing and
        malformed shards count as absent. When no shard is found and
        ``data_source_id`` is the legacy source, the legacy single file is
        tried instead.

        Returns:
            Deduplicated candles sorted by time, or None when nothing was found.
        """
        try:
            directory = self._require_directory()
        except StorageUnavailable:
            logger.debug("Kline data directory not set, nothing to read")
            return None

        timeframe = Timeframe.parse(timeframe)
        if start is None and end is None:
            years = [datetime.now(timezone.utc).year]
        else:
            start = start if start is not None else end
            end = end if end is not None else start
            years = self.years_spanning(start, end)

        stored = await self._read_shards(directory, timeframe, data_source_id, years)
        if stored is None and self._uses_legacy(data_source_id):
            stored = await self._read_legacy(directory, timeframe)
        return stored

    async def write(
        self, timeframe: Timeframe | str, data_source_id: str, candles: Iterable[Candle]
    ) -> None:
        """Write candles as one shard per UTC year, replacing those shards.

        Year shards are written concurrently. Every write is awaited; if any
        failed, the first error is raised afterwards.
        """
        candles = normalize_candles(candles)
        if not candles:
            return

        try:
            directory = self._require_directory()
        except StorageUnavailable:
            logger.warning("Kline data directory not set, cannot write to file")
            return

        timeframe = Timeframe.parse(timeframe)
        by_year: dict[int, list[Candle]] = {}
        for candle in candles:
            by_year.setdefault(year_of(candle.time), []).append(candle)

        last_updated = datetime.now(timezone.utc).isoformat()
        names = [self.shard_name(timeframe, data_source_id, year) for year in by_year]
        results = await asyncio.gather(
            *(
                self._write_shard(
                    directory,
                    name,
                    ShardFile(
                        timeframe=timeframe.value,
                        candles=year_candles,
                        last_updated=last_updated,
                    ),
                )
                for name, year_candles in zip(names, by_year.values())
            ),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to write kline data file {name}: {result}")
        if errors:
            raise errors[0]

        logger.debug(
            f"Wrote {len(candles)} {timeframe.value} candles for {data_source_id} "
            f"into {len(names)} shard(s)"
        )

    async def merge(
        self, timeframe: Timeframe | str, data_source_id: str, new_candles: Iterable[Candle]
    ) -> None:
        """Merge candles into their shards; new candles win on equal time.

        The years spanned by ``new_candles`` are read and rewritten. For the
        legacy data source, every year that has no shard yet is seeded from the
        legacy file, so its rows move into shards instead of being hidden by
        them.
        """
        new_candles = list(new_candles)
        if not new_candles:
            return

        try:
            directory = self._require_directory()
        except StorageUnavailable:
            logger.warning("Kline data directory not set, cannot merge candles")
            return

        timeframe = Timeframe.parse(timeframe)
        times = [c.time for c in new_candles]
        years = self.years_spanning(min(times), max(times))
        legacy_by_year = await self._legacy_by_year(directory, timeframe, data_source_id)

        merged: dict[int, Candle] = {}
        migrated = 0
        for year in sorted(set(years) | set(legacy_by_year)):
            name = self.shard_name(timeframe, data_source_id, year)
            shard = await self._load_or_none(directory, name)
            if shard is not None:
                if year not in years:
                    continue
                existing = shard.candles
            else:
                existing = legacy_by_year.get(year, [])
                migrated += len(existing)
            for candle in existing:
                merged[candle.time] = candle
        for candle in new_candles:
            merged[candle.time] = candle

        if migrated:
            logger.info(
                f"Migrating {migrated} legacy {timeframe.value} candles into "
                f"{data_source_id} shards"
            )
        await self.write(timeframe, data_source_id, merged.values())

    async def clear(self, timeframe: Timeframe | str, data_source_id: str) -> int:
        """Best-effort removal of the legacy file and every year shard.

        Returns:
            Number of files actually deleted.
        """
        try:
            directory = self._require_directory()
        except StorageUnavailable:
            logger.warning("Kline data directory not set, nothing to clear")
            return 0

        timeframe = Timeframe.parse(timeframe)
        first_year, last_year = self.clear_years
        names = [self.legacy_name(timeframe)] + [
            self.shard_name(timeframe, data_source_id, year)
            for year in range(first_year, last_year + 1)
        ]
        results = await asyncio.gather(
            *(self._remove(directory, name) for name in names), return_exceptions=True
        )

        removed = 0
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to delete kline data file {name}: {result}")
            elif result:
                removed += 1

        logger.info(f"Cleared {removed} {timeframe.value} file(s) for {data_source_id}")
        return removed

    def _require_directory(self) -> Directory:
        if self.directory is None:
            raise StorageUnavailable("No kline data directory configured")
        return self.directory

    def _uses_legacy(self, data_source_id: str) -> bool:
        return (
            self.legacy_data_source is not None
            and data_source_id.lower() == self.legacy_data_source
        )

    async def _read_shards(
        self,
        directory: Directory,
        timeframe: Timeframe,
        data_source_id: str,
        years: list[int],
    ) -> StoredCandles | None:
        all_candles: list[Candle] = []
        latest_update: str | None = None

        for year in years:
            name = self.shard_name(timeframe, data_source_id, year)
            shard = await self._load_or_none(directory, name)
            if shard is None:
                continue
            all_candles.extend(shard.candles)
            if latest_update is None or shard.last_updated > latest_update:
                latest_update = shard.last_updated

        if not all_candles:
            return None

        return StoredCandles(
            timeframe=timeframe,
            candles=normalize_candles(all_candles),
            last_updated=latest_update,
        )

    async def _read_legacy(
        self, directory: Directory, timeframe: Timeframe
    ) -> StoredCandles | None:
        name = self.legacy_name(timeframe)
        shard = await self._load_or_none(directory, name)
        if shard is None or not shard.candles:
            return None
        logger.info(f"Read {len(shard.candles)} candles from legacy file {name}")
        return StoredCandles(
            timeframe=timeframe,
            candles=normalize_candles(shard.candles),
            last_updated=shard.last_updated,
        )

    async def _legacy_by_year(
        self, directory: Directory, timeframe: Timeframe, data_source_id: str
    ) -> dict[int, list[Candle]]:
        if not self._uses_legacy(data_source_id):
            return {}
        shard = await self._load_or_none(directory, self.legacy_name(timeframe))
        by_year: dict[int, list[Candle]] = {}
        if shard is not None:
            for candle in normalize_candles(shard.candles):
                by_year.setdefault(year_of(candle.time), []).append(candle)
        return by_year

    async def _load_or_none(self, directory: Directory, name: str) -> ShardFile | None:
        """Load a shard, treating missing, malformed and unreadable files as absent."""
        try:
            return await self._load_shard(directory, name)
        except EntryNotFound:
            return None
        except MalformedShard as e:
            logger.warning(str(e))
            return None
        except OSError as e:
            logger.warning(f"Failed to read kline data file {name}: {e}")
            return None

    async def _load_shard(self, directory: Directory, name: str) -> ShardFile:
        handle = await directory.get_file(name, create=False)
        try:
            text = await handle.read_text()
        except UnicodeDecodeError as e:
            raise MalformedShard(name, f"not valid UTF-8 ({e.reason})") from e
        try:
            return ShardFile.model_validate_json(text)
        except ValidationError as e:
            raise MalformedShard(name, f"{e.error_count()} validation error(s)") from e

    async def _write_shard(self, directory: Directory, name: str, shard: ShardFile) -> None:
        handle = await directory.get_file(name, create=True)
        await handle.write_text(shard.model_dump_json(by_alias=True, indent=2))

    async def _remove(self, directory: Directory, name: str) -> bool:
        try:
            await directory.remove_entry(name)
        except EntryNotFound:
            return False
        return True
