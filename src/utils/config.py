"""Configuration management for the signal pipeline."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class MarketDataConfig:
    """Market data (CoinGecko) configuration."""

    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str | None = None
    cache_ttl: float = 30.0  # seconds
    request_timeout: float = 10.0  # seconds


@dataclass
class VenueConfig:
    """Venue price sampling configuration."""

    jupiter_price_url: str | None = "https://price.jup.ag/v4/price"
    cache_ttl: float = 15.0  # seconds
    request_timeout: float = 5.0  # seconds
    synthetic_seed: int | None = None


@dataclass
class PredictionConfig:
    """Prediction tier endpoints and timeouts."""

    primary_url: str | None = None
    secondary_url: str | None = None
    primary_timeout_ms: int = 10000
    secondary_timeout_ms: int = 5000


@dataclass
class SignalConfig:
    """Signal aggregation defaults."""

    min_profit_pct: float = 0.1
    price_band_pct: float = 0.05
    venue_variance_policy: str = "bullish"
    default_assets: list[str] = field(
        default_factory=lambda: ["solana", "ethereum", "bitcoin"]
    )


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    file_path: str | None = None


@dataclass
class ServerConfig:
    """HTTP server binding."""

    host: str = "0.0.0.0"
    port: int = 8000


class Config:
    """Main application configuration."""

    def __init__(self):
        self.market_data = MarketDataConfig(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"),
            api_key=os.getenv("COINGECKO_API_KEY"),
            cache_ttl=_env_float("PRICE_CACHE_TTL", "30"),
            request_timeout=_env_float("HTTP_TIMEOUT", "10"),
        )

        seed = os.getenv("SYNTHETIC_SEED")
        self.venues = VenueConfig(
            jupiter_price_url=os.getenv("JUPITER_PRICE_URL", "https://price.jup.ag/v4/price")
            or None,
            cache_ttl=_env_float("VENUE_CACHE_TTL", "15"),
            request_timeout=_env_float("VENUE_TIMEOUT", "5"),
            synthetic_seed=int(seed) if seed else None,
        )

        self.prediction = PredictionConfig(
            primary_url=os.getenv("PRIMARY_PREDICTOR_URL") or None,
            secondary_url=os.getenv("SECONDARY_PREDICTOR_URL") or None,
            primary_timeout_ms=int(os.getenv("PRIMARY_TIMEOUT_MS", "10000")),
            secondary_timeout_ms=int(os.getenv("SECONDARY_TIMEOUT_MS", "5000")),
        )

        self.signals = SignalConfig(
            min_profit_pct=_env_float("MIN_PROFIT_PCT", "0.1"),
            price_band_pct=_env_float("PRICE_BAND_PCT", "0.05"),
            venue_variance_policy=os.getenv("VENUE_VARIANCE_POLICY", "bullish").lower(),
            default_assets=_env_list("DEFAULT_ASSETS", "solana,ethereum,bitcoin"),
        )

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            file_path=os.getenv("LOG_FILE") or None,
        )

        self.server = ServerConfig(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
        )

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        if not self.market_data.base_url:
            raise ValueError("COINGECKO_BASE_URL environment variable is required")
        if self.market_data.cache_ttl <= 0:
            raise ValueError("PRICE_CACHE_TTL must be positive")
        if self.venues.cache_ttl <= 0:
            raise ValueError("VENUE_CACHE_TTL must be positive")

        for name, value in [
            ("PRIMARY_TIMEOUT_MS", self.prediction.primary_timeout_ms),
            ("SECONDARY_TIMEOUT_MS", self.prediction.secondary_timeout_ms),
        ]:
            if value <= 0:
                raise ValueError(f"{name} must be a positive number of milliseconds")

        if self.signals.min_profit_pct < 0:
            raise ValueError("MIN_PROFIT_PCT cannot be negative")
        if not 0 < self.signals.price_band_pct < 1:
            raise ValueError("PRICE_BAND_PCT must be between 0 and 1")
        if self.signals.venue_variance_policy not in ("bullish", "neutral", "bearish"):
            raise ValueError(
                f"Invalid VENUE_VARIANCE_POLICY: {self.signals.venue_variance_policy}. "
                "Use bullish, neutral or bearish"
            )
        if not self.signals.default_assets:
            raise ValueError("DEFAULT_ASSETS must list at least one asset")

        if not 0 < self.server.port < 65536:
            raise ValueError(f"Invalid PORT: {self.server.port}")

        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {self.logging.level}")

        return True


# Global config instance
config = Config()
