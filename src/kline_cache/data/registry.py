"""Source registry mapping source names to candle fetchers."""

import logging
from collections.abc import Iterable
from typing import NamedTuple

from kline_cache.data.fetchers.base import BaseFetcher
from kline_cache.exceptions import DuplicateSource, InvalidIdFormat, UnknownSource

logger = logging.getLogger(__name__)

ID_DELIMITER = "-"

DEFAULT_SYMBOLS = ("btc", "eth", "sol")


class DataSource(NamedTuple):
    """Parts of a ``source-symbol`` data source id."""

    source: str
    symbol: str


class SourceOption(NamedTuple):
    """A selectable source or symbol: display label and id value."""

    label: str
    value: str


def parse_data_source_id(data_source_id: str) -> DataSource:
    """Split a data source id into source name and upper-cased symbol.

    Multi-segment symbols are kept together: ``'binance-btc-usdt'`` parses to
    ``DataSource('binance', 'BTC-USDT')``.

    Raises:
        InvalidIdFormat: If the id has fewer than two segments or an empty part.
    """
    parts = data_source_id.split(ID_DELIMITER)
    if len(parts) < 2:
        raise InvalidIdFormat(data_source_id)
    source = parts[0]
    symbol = ID_DELIMITER.join(parts[1:]).upper()
    if not source or not symbol:
        raise InvalidIdFormat(data_source_id)
    return DataSource(source, symbol)


def build_data_source_id(source: str, symbol: str) -> str:
    """Build a lower-cased ``source-symbol`` id."""
    return f"{source.lower()}{ID_DELIMITER}{symbol.lower()}"


class SourceRegistry:
    """Explicit registry of candle sources, created at startup and injected.

    Source names are case-insensitive. Registering a name twice is an error
    unless ``replace=True`` is passed.
    """

    def __init__(self, symbols: Iterable[str] = DEFAULT_SYMBOLS) -> None:
        self._fetchers: dict[str, BaseFetcher] = {}
        self._labels: dict[str, str] = {}
        self.symbols = [s.lower() for s in symbols]

    def register(
        self,
        name: str,
        fetcher: BaseFetcher,
        replace: bool = False,
        label: str | None = None,
    ) -> None:
        """Register a fetcher under a source name.

        Args:
            name: Source name (e.g., 'binance').
            fetcher: Fetcher serving that source.
            replace: Allow overwriting an existing registration.
            label: Display name for ``source_options``. Defaults to the
                capitalized name.

        Raises:
            DuplicateSource: If ``name`` is taken and ``replace`` is False.
        """
        key = name.lower()
        if key in self._fetchers:
            if not replace:
                raise DuplicateSource(key)
            logger.warning(f"Data source {key} already registered, replacing")
        self._fetchers[key] = fetcher
        self._labels[key] = label or name.capitalize()
        logger.info(f"Registered data source: {key} ({type(fetcher).__name__})")

    def resolve(self, name: str) -> BaseFetcher | None:
        """Return the fetcher registered for ``name``, or None."""
        return self._fetchers.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._fetchers)

    def source_options(self) -> list[SourceOption]:
        """Registered sources as (label, value) pairs, sorted by value."""
        return [SourceOption(self._labels[name], name) for name in self.names()]

    def symbol_options(self) -> list[SourceOption]:
        """Configured symbols as (label, value) pairs, e.g. ('BTC', 'btc')."""
        return [SourceOption(symbol.upper(), symbol) for symbol in self.symbols]

    def fetcher_for(self, data_source_id: str) -> tuple[BaseFetcher, str]:
        """Resolve a data source id to its fetcher and symbol.

        Raises:
            InvalidIdFormat: If the id is malformed.
            UnknownSource: If no fetcher is registered for the id's source.
        """
        source, symbol = parse_data_source_id(data_source_id)
        fetcher = self.resolve(source)
        if fetcher is None:
            raise UnknownSource(source, self.names())
        return fetcher, symbol

    parse_id = staticmethod(parse_data_source_id)
    build_id = staticmethod(build_data_source_id)

    async def close(self) -> None:
        """Close every registered fetcher."""
        for name, fetcher in self._fetchers.items():
            try:
                await fetcher.close()
            except Exception as e:
                logger.warning(f"Failed to close data source {name}: {e}")

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._fetchers

    def __len__(self) -> int:
        return len(self._fetchers)
