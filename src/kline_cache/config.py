"""Runtime configuration using pydantic-settings."""

import json
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Cache settings loaded from ``KLINE_CACHE_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="KLINE_CACHE_",
        env_file=".env",
        extra="ignore",
    )

    # Storage
    data_dir: Path | None = Field(None, description="Folder holding shard files")
    legacy_data_source: str = "binance-btc"
    clear_start_year: int = 2000
    clear_end_year: int = 2100

    # Remote
    binance_base_url: str = "https://api.binance.com/api/v3"
    request_timeout: float = 10.0
    max_page_size: int = Field(1000, ge=1, le=1000)
    max_pages: int = Field(10, ge=1)
    latest_default_limit: int = Field(100, ge=1)
    ccxt_exchanges: Annotated[list[str], NoDecode] = Field(default_factory=list)
    symbols: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["btc", "eth", "sol"],
        description="Symbols offered as options",
    )

    # Coverage
    min_coverage_ratio: float = Field(0.8, ge=0.0, le=1.0)
    max_gap_periods: float = Field(2.0, gt=0.0)

    default_data_source: str = "binance-btc"

    @field_validator("ccxt_exchanges", "symbols", mode="before")
    @classmethod
    def parse_name_list(cls, v: Any) -> list[str]:
        """Accept a JSON list or a comma-separated string."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                v = json.loads(v)
            else:
                v = v.split(",")
        return [str(item).strip().lower() for item in v if str(item).strip()]
