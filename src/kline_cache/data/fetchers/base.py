from abc import ABC, abstractmethod
from typing import Any

from kline_cache.models import Candle, Timeframe


class BaseFetcher(ABC):
    """Abstract base class for remote candle sources.

    Attributes:
        name (str): Source name used as the registry key (e.g., 'binance').
        max_page_size (int): Maximum candles returned by a single request.
        max_pages (int): Maximum requests issued by one ``fetch`` call.
    """

    def __init__(self, name: str, max_page_size: int = 1000, max_pages: int = 10):
        """Initialize the fetcher.

        Args:
            name: The unique identifier for the source.
            max_page_size: Page-item limit per request.
            max_pages: Page-count cap per ``fetch`` call.
        """
        self.name = name
        self.max_page_size = max_page_size
        self.max_pages = max_pages

    @abstractmethod
    async def fetch(
        self, timeframe: Timeframe, symbol: str, start: int, end: int
    ) -> list[Candle]:
        """Fetch candles covering ``[start, end)``.

        Implementations must paginate when the range exceeds a single page and
        stop after ``max_pages`` requests, returning whatever was collected.

        Args:
            timeframe: The candle timeframe.
            symbol: The traded symbol (e.g., 'BTC').
            start: Start time in seconds (inclusive).
            end: End time in seconds.

        Returns:
            list[Candle]: Candles in chronological fetch order.

        Raises:
            RemoteApiError: If any request fails. Pages already fetched are discarded.
        """
        pass

    @abstractmethod
    async def fetch_latest(
        self, symbol: str, timeframe: Timeframe, limit: int = 100
    ) -> list[Candle]:
        """Fetch the most recent ``limit`` candles with a single request.

        Args:
            symbol: The traded symbol.
            timeframe: The candle timeframe.
            limit: Number of candles, clamped to ``[1, max_page_size]``.

        Returns:
            list[Candle]: The latest candles, oldest first.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release any resources held by the fetcher (e.g., HTTP sessions)."""
        pass

    def clamp_limit(self, limit: int) -> int:
        """Clamp a requested candle count to ``[1, max_page_size]``."""
        return min(max(1, limit), self.max_page_size)

    async def __aenter__(self) -> "BaseFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()
