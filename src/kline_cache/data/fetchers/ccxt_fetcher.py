"""CCXT-based candle fetcher implementation."""

import logging
from typing import Any

import ccxt.async_support as ccxt
from ccxt.base.errors import BaseError as CCXTError

from kline_cache.data.fetchers.base import BaseFetcher
from kline_cache.exceptions import RemoteApiError
from kline_cache.models import Candle, Timeframe

logger = logging.getLogger(__name__)

CCXT_TIMEFRAMES = {
    Timeframe.ONE_HOUR: "1h",
    Timeframe.FOUR_HOURS: "4h",
    Timeframe.ONE_DAY: "1d",
    Timeframe.ONE_WEEK: "1w",
}


def to_ccxt_symbol(symbol: str, quote: str = "USDT") -> str:
    """Convert a base symbol to a unified ccxt pair (e.g. 'BTC' -> 'BTC/USDT')."""
    symbol = symbol.upper()
    if "/" in symbol:
        return symbol
    if symbol.endswith(quote) and symbol != quote:
        return f"{symbol[: -len(quote)]}/{quote}"
    return f"{symbol}/{quote}"


class CCXTFetcher(BaseFetcher):
    """CCXT implementation of the candle fetcher, registered under its exchange id."""

    def __init__(
        self,
        exchange_id: str,
        sandbox: bool = False,
        max_page_size: int = 1000,
        max_pages: int = 10,
    ):
        """Initialize the CCXT fetcher.

        Args:
            exchange_id: The ccxt exchange identifier (e.g., 'okx', 'bitget').
            sandbox: Whether to use the exchange's sandbox/testnet mode.
            max_page_size: Candles requested per call.
            max_pages: Maximum requests per ``fetch`` call.
        """
        super().__init__(exchange_id.lower(), max_page_size=max_page_size, max_pages=max_pages)
        self.exchange_id = exchange_id.lower()
        self.sandbox = sandbox
        exchange_class = getattr(ccxt, self.exchange_id)
        self.exchange = exchange_class({"enableRateLimit": True})
        if sandbox:
            self.exchange.set_sandbox_mode(True)

    async def fetch(
        self, timeframe: Timeframe, symbol: str, start: int, end: int
    ) -> list[Candle]:
        """Fetch candles for a time range using manual pagination.

        Args:
            timeframe: Candle timeframe.
            symbol: Base symbol (e.g., 'BTC') or unified pair (e.g., 'BTC/USDT').
            start: Start time in seconds.
            end: End time in seconds.

        Returns:
            Candles inside ``[start, end]`` in chronological order.
        """
        timeframe = Timeframe.parse(timeframe)
        token = CCXT_TIMEFRAMES[timeframe]
        period = timeframe.seconds
        pair = to_ccxt_symbol(symbol)

        all_candles: list[Candle] = []
        cursor = start
        requests = 0

        while cursor < end and requests < self.max_pages:
            requests += 1
            rows = await self._fetch_ohlcv(pair, token, cursor * 1000, self.max_page_size)

            if not rows:
                break

            candles = self._to_candles(rows)
            # Filter candles within range and add to results
            all_candles.extend(c for c in candles if start <= c.time <= end)

            if len(candles) < self.max_page_size:
                break

            # Get the last timestamp to advance pagination
            last_time = candles[-1].time
            if last_time >= end:
                break

            cursor = last_time + period

        logger.debug(
            f"Fetched {len(all_candles)} {pair} {token} candles from "
            f"{self.exchange_id} in {requests} requests"
        )
        return all_candles

    async def fetch_latest(
        self, symbol: str, timeframe: Timeframe, limit: int = 100
    ) -> list[Candle]:
        """Fetch the latest candles with a single request."""
        timeframe = Timeframe.parse(timeframe)
        rows = await self._fetch_ohlcv(
            to_ccxt_symbol(symbol), CCXT_TIMEFRAMES[timeframe], None, self.clamp_limit(limit)
        )
        return self._to_candles(rows)

    async def _fetch_ohlcv(
        self, pair: str, token: str, since: int | None, limit: int
    ) -> list[list[Any]]:
        try:
            return await self.exchange.fetch_ohlcv(pair, token, since, limit)
        except CCXTError as e:
            logger.error(f"{self.exchange_id} fetch_ohlcv failed for {pair}: {e}")
            raise RemoteApiError(None, str(e), source=self.exchange_id) from e

    def _to_candles(self, rows: list[list[Any]]) -> list[Candle]:
        """Convert ccxt rows, reporting unparseable ones as RemoteApiError."""
        candles = []
        for row in rows:
            try:
                candles.append(self._to_candle(row))
            except (ValueError, TypeError, IndexError) as e:
                logger.error(f"{self.exchange_id} returned malformed OHLCV row {row!r}: {e}")
                raise RemoteApiError(
                    None, f"malformed OHLCV row {row!r}", source=self.exchange_id
                ) from e
        return candles

    def _to_candle(self, row: list[Any]) -> Candle:
        """Convert a ccxt OHLCV row ``[ms, o, h, l, c, v]`` to a Candle."""
        return Candle(
            time=int(row[0]) // 1000,
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
        )

    async def close(self) -> None:
        """Close the exchange connection and release resources."""
        await self.exchange.close()
