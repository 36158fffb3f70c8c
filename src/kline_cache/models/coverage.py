"""Coverage analysis result models."""

from pydantic import BaseModel, Field


class CoverageGap(BaseModel):
    """A closed time range ``[start, end]`` (seconds) missing from local data."""

    start: int
    end: int


class CoverageResult(BaseModel):
    """Outcome of checking known candles against a requested window."""

    sufficient: bool
    gaps: list[CoverageGap] = Field(default_factory=list)
