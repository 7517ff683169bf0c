"""Tests for environment-driven configuration."""

import pytest

from src.utils.config import Config


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "COINGECKO_BASE_URL",
        "COINGECKO_API_KEY",
        "PRICE_CACHE_TTL",
        "HTTP_TIMEOUT",
        "JUPITER_PRICE_URL",
        "VENUE_CACHE_TTL",
        "VENUE_TIMEOUT",
        "SYNTHETIC_SEED",
        "PRIMARY_PREDICTOR_URL",
        "SECONDARY_PREDICTOR_URL",
        "PRIMARY_TIMEOUT_MS",
        "SECONDARY_TIMEOUT_MS",
        "MIN_PROFIT_PCT",
        "PRICE_BAND_PCT",
        "VENUE_VARIANCE_POLICY",
        "DEFAULT_ASSETS",
        "LOG_LEVEL",
        "LOG_FILE",
        "HOST",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Test suite for Config."""

    def test_defaults(self, clean_env):
        config = Config()

        assert config.market_data.base_url == "https://api.coingecko.com/api/v3"
        assert config.market_data.cache_ttl == 30
        assert config.venues.cache_ttl == 15
        assert config.venues.synthetic_seed is None
        assert config.prediction.primary_url is None
        assert config.prediction.primary_timeout_ms == 10000
        assert config.prediction.secondary_timeout_ms == 5000
        assert config.signals.min_profit_pct == 0.1
        assert config.signals.venue_variance_policy == "bullish"
        assert config.signals.default_assets == ["solana", "ethereum", "bitcoin"]
        assert config.logging.level == "INFO"
        assert config.server.port == 8000
        assert config.validate() is True

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("PRICE_CACHE_TTL", "60")
        clean_env.setenv("SYNTHETIC_SEED", "42")
        clean_env.setenv("PRIMARY_PREDICTOR_URL", "https://predict.test")
        clean_env.setenv("PRIMARY_TIMEOUT_MS", "2500")
        clean_env.setenv("VENUE_VARIANCE_POLICY", "Neutral")
        clean_env.setenv("DEFAULT_ASSETS", "solana, cardano ,")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("JUPITER_PRICE_URL", "")

        config = Config()

        assert config.market_data.cache_ttl == 60
        assert config.venues.synthetic_seed == 42
        assert config.venues.jupiter_price_url is None
        assert config.prediction.primary_url == "https://predict.test"
        assert config.prediction.primary_timeout_ms == 2500
        assert config.signals.venue_variance_policy == "neutral"
        assert config.signals.default_assets == ["solana", "cardano"]
        assert config.logging.level == "DEBUG"
        assert config.validate() is True

    @pytest.mark.parametrize(
        "name,value",
        [
            ("COINGECKO_BASE_URL", ""),
            ("PRICE_CACHE_TTL", "0"),
            ("VENUE_CACHE_TTL", "-5"),
            ("PRIMARY_TIMEOUT_MS", "0"),
            ("SECONDARY_TIMEOUT_MS", "-1"),
            ("MIN_PROFIT_PCT", "-0.5"),
            ("PRICE_BAND_PCT", "1.5"),
            ("VENUE_VARIANCE_POLICY", "contrarian"),
            ("DEFAULT_ASSETS", " , "),
            ("LOG_LEVEL", "VERBOSE"),
            ("PORT", "0"),
            ("PORT", "70000"),
        ],
    )
    def test_invalid_values(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValueError):
            Config().validate()
