"""Coverage gap analysis for locally known candles."""

import math
from collections.abc import Iterable

from kline_cache.models import Candle, CoverageGap, CoverageResult, Timeframe


class CoverageAnalyzer:
    """Decides whether known candles cover a window and which ranges to fetch.

    Sparse coverage (below ``min_coverage_ratio`` of the expected candle count)
    is answered with one full-range gap instead of many small ones. Otherwise
    prefix, suffix and internal gaps are reported individually; an internal
    gap is any step between consecutive candles wider than
    ``max_gap_periods`` periods.
    """

    def __init__(self, min_coverage_ratio: float = 0.8, max_gap_periods: float = 2.0):
        self.min_coverage_ratio = min_coverage_ratio
        self.max_gap_periods = max_gap_periods

    def check(
        self,
        candles: Iterable[Candle],
        start: int,
        end: int,
        timeframe: Timeframe | str,
    ) -> CoverageResult:
        """Check known candles against the inclusive window ``[start, end]``.

        Args:
            candles: Known candles, in any order.
            start: Window start in seconds.
            end: Window end in seconds.
            timeframe: Candle timeframe, for the period length.

        Returns:
            CoverageResult with ``sufficient`` True when no gap was found.
        """
        period = Timeframe.parse(timeframe).seconds
        full_range = CoverageResult(sufficient=False, gaps=[CoverageGap(start=start, end=end)])

        times = sorted({c.time for c in candles})
        if not times:
            return full_range

        min_known, max_known = times[0], times[-1]
        gaps: list[CoverageGap] = []

        if start < min_known:
            gaps.append(CoverageGap(start=start, end=min(min_known - 1, end)))
        if end > max_known:
            gaps.append(CoverageGap(start=max(max_known + 1, start), end=end))

        in_range = [t for t in times if start <= t <= end]
        expected = max(1, math.ceil((end - start) / period))
        if len(in_range) / expected < self.min_coverage_ratio:
            return full_range

        max_step = self.max_gap_periods * period
        for prev, nxt in zip(in_range, in_range[1:]):
            if nxt - prev > max_step:
                gap_start = prev + period
                gap_end = nxt - period
                if gap_start <= gap_end:
                    gaps.append(CoverageGap(start=gap_start, end=gap_end))

        return CoverageResult(sufficient=not gaps, gaps=gaps)
