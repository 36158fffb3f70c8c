"""Tests for Settings and the cache manager factory."""

from unittest.mock import MagicMock, patch

import pytest

from kline_cache.config import Settings
from kline_cache.data import BinanceFetcher, CCXTFetcher
from kline_cache.factory import create_cache_manager, create_registry
from kline_cache.storage import LocalDirectory


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from KLINE_CACHE_* variables and any local .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "KLINE_CACHE_DATA_DIR",
        "KLINE_CACHE_CCXT_EXCHANGES",
        "KLINE_CACHE_MAX_PAGES",
        "KLINE_CACHE_MIN_COVERAGE_RATIO",
        "KLINE_CACHE_SYMBOLS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Test the default limits and thresholds."""
        settings = Settings()

        assert settings.data_dir is None
        assert settings.max_page_size == 1000
        assert settings.max_pages == 10
        assert settings.latest_default_limit == 100
        assert settings.min_coverage_ratio == 0.8
        assert settings.max_gap_periods == 2.0
        assert settings.legacy_data_source == "binance-btc"
        assert (settings.clear_start_year, settings.clear_end_year) == (2000, 2100)
        assert settings.ccxt_exchanges == []
        assert settings.symbols == ["btc", "eth", "sol"]

    def test_reads_prefixed_environment(self, monkeypatch, tmp_path):
        """Test that KLINE_CACHE_* variables override defaults."""
        monkeypatch.setenv("KLINE_CACHE_DATA_DIR", str(tmp_path / "klines"))
        monkeypatch.setenv("KLINE_CACHE_MAX_PAGES", "3")
        monkeypatch.setenv("KLINE_CACHE_MIN_COVERAGE_RATIO", "0.5")

        settings = Settings()

        assert settings.data_dir == tmp_path / "klines"
        assert settings.max_pages == 3
        assert settings.min_coverage_ratio == 0.5

    @pytest.mark.parametrize("raw", ["OKX, bitget", '["okx", "Bitget"]'])
    def test_exchange_list_formats(self, monkeypatch, raw):
        """Test that exchanges accept comma-separated or JSON lists."""
        monkeypatch.setenv("KLINE_CACHE_CCXT_EXCHANGES", raw)

        assert Settings().ccxt_exchanges == ["okx", "bitget"]

    def test_symbols_from_environment(self, monkeypatch):
        """Test that symbols parse from a comma-separated variable."""
        monkeypatch.setenv("KLINE_CACHE_SYMBOLS", "BTC,doge")

        assert Settings().symbols == ["btc", "doge"]

    def test_page_size_above_binance_limit_is_rejected(self):
        """Test that max_page_size cannot exceed 1000."""
        with pytest.raises(ValueError):
            Settings(max_page_size=5000)


class TestFactory:
    """Tests for create_registry and create_cache_manager."""

    def test_registry_always_has_binance(self):
        """Test that Binance is registered with the configured limits."""
        registry = create_registry(Settings(max_pages=4))

        fetcher = registry.resolve("binance")
        assert isinstance(fetcher, BinanceFetcher)
        assert fetcher.max_pages == 4

    @patch("kline_cache.data.fetchers.ccxt_fetcher.ccxt")
    def test_registry_adds_ccxt_exchanges(self, mock_ccxt):
        """Test that each configured exchange gets a CCXT fetcher."""
        mock_ccxt.okx = MagicMock()
        mock_ccxt.bitget = MagicMock()

        registry = create_registry(Settings(ccxt_exchanges=["okx", "bitget"]))

        assert registry.names() == ["binance", "bitget", "okx"]
        assert isinstance(registry.resolve("okx"), CCXTFetcher)

    @patch("kline_cache.data.fetchers.ccxt_fetcher.ccxt")
    def test_registry_offers_labelled_options(self, mock_ccxt):
        """Test that sources carry display labels and symbols come from settings."""
        mock_ccxt.okx = MagicMock()

        registry = create_registry(Settings(ccxt_exchanges=["okx"], symbols=["btc", "eth"]))

        assert registry.source_options() == [("Binance", "binance"), ("OKX", "okx")]
        assert registry.symbol_options() == [("BTC", "btc"), ("ETH", "eth")]

    def test_manager_uses_data_dir(self, tmp_path):
        """Test that a configured data_dir becomes the store's directory."""
        manager = create_cache_manager(
            Settings(data_dir=tmp_path, min_coverage_ratio=0.6, latest_default_limit=50)
        )

        assert isinstance(manager.store.directory, LocalDirectory)
        assert manager.store.directory.path == tmp_path
        assert manager.analyzer.min_coverage_ratio == 0.6
        assert manager.latest_limit == 50
        assert "binance" in manager.registry

    def test_manager_without_data_dir_is_remote_only(self):
        """Test that no data_dir leaves the store without a directory."""
        manager = create_cache_manager(Settings())

        assert manager.store.directory is None
