"""Pytest configuration and fixtures."""

from datetime import datetime
from unittest.mock import Mock

import pytest
import requests

from src.models.market_data import MarketSnapshot, PriceQuote


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_snapshot():
    """Factory for MarketSnapshot objects with sensible defaults."""

    def _make(
        asset="solana",
        price=100.0,
        change=0.0,
        volume=5e8,
        market_cap=6e10,
    ) -> MarketSnapshot:
        return MarketSnapshot(
            asset=asset,
            price_usd=price,
            change_24h_pct=change,
            volume_24h_usd=volume,
            market_cap_usd=market_cap,
            fetched_at=datetime(2024, 1, 1, 12, 0, 0),
        )

    return _make


@pytest.fixture
def make_quotes():
    """Factory turning {venue: price} into real (non-synthetic) quotes."""

    def _make(prices: dict[str, float], asset="solana") -> dict[str, PriceQuote]:
        observed = datetime(2024, 1, 1, 12, 0, 0)
        return {
            venue: PriceQuote(asset=asset, venue=venue, price=price, observed_at=observed)
            for venue, price in prices.items()
        }

    return _make


def _json_response(payload, status_code: int = 200) -> Mock:
    """Mock of requests.Response returning payload from .json()."""
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def json_response():
    return _json_response


@pytest.fixture
def coingecko_payload():
    return {
        "solana": {
            "usd": 150.0,
            "usd_24h_change": 8.0,
            "usd_24h_vol": 2e9,
            "usd_market_cap": 7e10,
        },
        "bitcoin": {
            "usd": 60000.0,
            "usd_24h_change": -1.5,
            "usd_24h_vol": 3e10,
            "usd_market_cap": 1.2e12,
        },
    }


@pytest.fixture
def coingecko_session(coingecko_payload):
    """requests.Session mock serving the CoinGecko payload."""
    session = Mock(spec=requests.Session)
    session.get.return_value = _json_response(coingecko_payload)
    return session
