"""Binance REST kline fetcher."""

import logging
from typing import Any

import httpx

from kline_cache.data.fetchers.base import BaseFetcher
from kline_cache.exceptions import RemoteApiError
from kline_cache.models import Candle, Timeframe

logger = logging.getLogger(__name__)

BINANCE_API_BASE = "https://api.binance.com/api/v3"

INTERVALS = {
    Timeframe.ONE_HOUR: "1h",
    Timeframe.FOUR_HOURS: "4h",
    Timeframe.ONE_DAY: "1d",
    Timeframe.ONE_WEEK: "1w",
}


def to_binance_symbol(symbol: str, quote: str = "USDT") -> str:
    """Convert a base symbol to a Binance pair (e.g. 'BTC' -> 'BTCUSDT')."""
    symbol = symbol.upper()
    return symbol if quote in symbol else f"{symbol}{quote}"


def parse_kline(row: list[Any]) -> Candle:
    """Convert a Binance kline row into a Candle.

    Rows look like ``[openTimeMs, open, high, low, close, volume, closeTimeMs, ...]``;
    only the first five fields are used.
    """
    open_time, open_, high, low, close = row[:5]
    return Candle(
        time=int(open_time) // 1000,
        open=float(open_),
        high=float(high),
        low=float(low),
        close=float(close),
    )


class BinanceFetcher(BaseFetcher):
    """Binance spot klines over ``GET /api/v3/klines``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str = BINANCE_API_BASE,
        max_page_size: int = 1000,
        max_pages: int = 10,
        timeout: float = 10.0,
    ):
        """Initialize the Binance fetcher.

        Args:
            client: Optional shared HTTP client. When omitted one is created
                lazily and closed by ``close()``.
            base_url: REST API root.
            max_page_size: Candles per request (Binance allows at most 1000).
            max_pages: Maximum requests per ``fetch`` call.
            timeout: Request timeout in seconds for an owned client.
        """
        super().__init__("binance", max_page_size=max_page_size, max_pages=max_pages)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def fetch(
        self, timeframe: Timeframe, symbol: str, start: int, end: int
    ) -> list[Candle]:
        """Fetch candles for ``[start, end)``, paginating up to ``max_pages`` requests.

        Args:
            timeframe: Candle timeframe.
            symbol: Base symbol (e.g., 'BTC') or full pair (e.g., 'BTCUSDT').
            start: Start time in seconds.
            end: End time in seconds.

        Returns:
            Candles in chronological order.
        """
        timeframe = Timeframe.parse(timeframe)
        interval = INTERVALS[timeframe]
        period = timeframe.seconds
        pair = to_binance_symbol(symbol)

        all_candles: list[Candle] = []
        cursor = start
        requests = 0

        while cursor < end and requests < self.max_pages:
            requests += 1
            page_end = min(cursor + self.max_page_size * period, end)

            candles = await self._get_candles(
                {
                    "symbol": pair,
                    "interval": interval,
                    "startTime": cursor * 1000,
                    "endTime": page_end * 1000,
                    "limit": self.max_page_size,
                }
            )

            if not candles:
                break

            all_candles.extend(candles)

            # A short page means the end of available history
            if len(candles) < self.max_page_size:
                break

            last_time = candles[-1].time
            if last_time >= end:
                break

            cursor = last_time + period
        else:
            if cursor < end:
                logger.warning(
                    f"Stopped {pair} {interval} pagination after {requests} requests; "
                    f"returning {len(all_candles)} candles"
                )

        logger.debug(
            f"Fetched {len(all_candles)} {pair} {interval} candles in {requests} requests"
        )
        return all_candles

    async def fetch_latest(
        self, symbol: str, timeframe: Timeframe, limit: int = 100
    ) -> list[Candle]:
        """Fetch the latest ``limit`` candles without pagination."""
        timeframe = Timeframe.parse(timeframe)
        return await self._get_candles(
            {
                "symbol": to_binance_symbol(symbol),
                "interval": INTERVALS[timeframe],
                "limit": self.clamp_limit(limit),
            }
        )

    async def _get_candles(self, params: dict[str, Any]) -> list[Candle]:
        """Issue one klines request and parse its rows.

        Raises:
            RemoteApiError: On transport failure, non-2xx status, unexpected body
                or a row that cannot be parsed.
        """
        url = f"{self.base_url}/klines"
        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Binance request to {url} failed: {e}")
            raise RemoteApiError(None, str(e) or type(e).__name__, source="Binance") from e

        if not response.is_success:
            logger.error(
                f"Binance API error for {params.get('symbol')}: "
                f"{response.status_code} {response.reason_phrase}"
            )
            raise RemoteApiError(
                response.status_code, response.reason_phrase, source="Binance"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteApiError(
                response.status_code, f"invalid JSON body: {e}", source="Binance"
            ) from e

        if not isinstance(data, list):
            raise RemoteApiError(
                response.status_code, f"unexpected response body: {data!r}", source="Binance"
            )

        candles = []
        for row in data:
            try:
                candles.append(parse_kline(row))
            except (ValueError, TypeError, IndexError) as e:
                logger.error(f"Malformed Binance kline row {row!r}: {e}")
                raise RemoteApiError(
                    response.status_code, f"malformed kline row {row!r}", source="Binance"
                ) from e
        return candles

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
