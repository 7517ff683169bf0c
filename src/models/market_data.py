"""Market data models: spot snapshots and per-venue price quotes."""

import math
from dataclasses import dataclass
from datetime import datetime

# CoinGecko asset ids mapped to the ticker symbols venues quote in
ASSET_SYMBOLS = {
    "solana": "SOL",
    "ethereum": "ETH",
    "bitcoin": "BTC",
    "cardano": "ADA",
    "polkadot": "DOT",
    "usd-coin": "USDC",
    "tether": "USDT",
    "raydium": "RAY",
    "orca": "ORCA",
    "serum": "SRM",
}


def symbol_for(asset_id: str) -> str:
    """Ticker symbol for an asset id, falling back to the upper-cased id."""
    return ASSET_SYMBOLS.get(asset_id.lower(), asset_id.upper())


@dataclass(frozen=True)
class PriceQuote:
    """A price for one asset observed at one venue."""

    asset: str
    venue: str
    price: float
    observed_at: datetime
    synthetic: bool = False

    def __post_init__(self):
        if not (math.isfinite(self.price) and self.price > 0):
            raise ValueError(
                f"Quote price must be positive and finite, got {self.price} from {self.venue}"
            )


@dataclass(frozen=True)
class MarketSnapshot:
    """Spot market data for an asset as reported by the market data source."""

    asset: str
    price_usd: float
    change_24h_pct: float
    volume_24h_usd: float
    market_cap_usd: float
    fetched_at: datetime

    @property
    def symbol(self) -> str:
        return symbol_for(self.asset)
