"""Candle and timeframe models for OHLC candlestick data."""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from enum import Enum

import pandas as pd
from pydantic import BaseModel, Field


class Timeframe(str, Enum):
    """Supported candle granularities."""

    ONE_HOUR = "1H"
    FOUR_HOURS = "4H"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"

    @classmethod
    def parse(cls, value: "Timeframe | str") -> "Timeframe":
        """Return the member matching ``value`` (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(
                f"Unsupported timeframe: {value}. "
                f"Expected one of {[tf.value for tf in cls]}"
            ) from None

    @property
    def seconds(self) -> int:
        """Length of one candle period in seconds."""
        return _PERIOD_SECONDS[self]

    @property
    def default_days(self) -> int:
        """Days of history loaded when no explicit range is given."""
        return _DEFAULT_DAYS[self]

    @property
    def window_seconds(self) -> int:
        """Visible chart window size in seconds."""
        return _WINDOW_SECONDS[self]

    @property
    def before_days(self) -> int:
        """Days of history shown before a reference (note) time."""
        return _BEFORE_DAYS[self]

    def default_range(self, end: int | None = None) -> tuple[int, int]:
        """Default lookup window ``(start, end)`` in UTC seconds.

        Args:
            end: Window end in seconds. Defaults to now.
        """
        if end is None:
            end = int(datetime.now(timezone.utc).timestamp())
        start = end - int(timedelta(days=self.default_days).total_seconds())
        return start, end


_HOUR = 60 * 60
_DAY = 24 * _HOUR

_PERIOD_SECONDS = {
    Timeframe.ONE_HOUR: _HOUR,
    Timeframe.FOUR_HOURS: 4 * _HOUR,
    Timeframe.ONE_DAY: _DAY,
    Timeframe.ONE_WEEK: 7 * _DAY,
}

_DEFAULT_DAYS = {
    Timeframe.ONE_HOUR: 7,
    Timeframe.FOUR_HOURS: 14,
    Timeframe.ONE_DAY: 30,
    Timeframe.ONE_WEEK: 180,
}

_WINDOW_SECONDS = {
    Timeframe.ONE_HOUR: _DAY,
    Timeframe.FOUR_HOURS: 2 * _DAY,
    Timeframe.ONE_DAY: 30 * _DAY,
    Timeframe.ONE_WEEK: 180 * _DAY,
}

_BEFORE_DAYS = {
    Timeframe.ONE_HOUR: 7,
    Timeframe.FOUR_HOURS: 14,
    Timeframe.ONE_DAY: 30,
    Timeframe.ONE_WEEK: 90,
}


class Candle(BaseModel):
    """A single OHLC candle keyed by its opening time."""

    time: int = Field(..., description="Candle opening time (Unix timestamp in seconds, UTC)")
    open: float = Field(..., description="Opening price")
    high: float = Field(..., description="Highest price during the period")
    low: float = Field(..., description="Lowest price during the period")
    close: float = Field(..., description="Closing price")

    model_config = {
        "extra": "ignore",
    }


class ShardFile(BaseModel):
    """On-disk layout of a shard: one (timeframe, data source, year) unit."""

    timeframe: str = Field(..., min_length=1)
    candles: list[Candle]
    last_updated: str = Field(..., alias="lastUpdated", min_length=1)

    model_config = {
        "populate_by_name": True,
    }


class StoredCandles(BaseModel):
    """Candles loaded from the store with their freshest update time."""

    timeframe: Timeframe
    candles: list[Candle]
    last_updated: str


def normalize_candles(candles: Iterable[Candle]) -> list[Candle]:
    """Deduplicate by time (last seen wins) and sort ascending."""
    by_time: dict[int, Candle] = {}
    for candle in candles:
        by_time[candle.time] = candle
    return [by_time[t] for t in sorted(by_time)]


def filter_candles(candles: Iterable[Candle], start: int, end: int) -> list[Candle]:
    """Keep candles whose time falls inside ``[start, end]``."""
    return [c for c in candles if start <= c.time <= end]


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """Convert candles to a DataFrame with columns time, open, high, low, close."""
    return pd.DataFrame(
        [c.model_dump() for c in candles],
        columns=["time", "open", "high", "low", "close"],
    )
