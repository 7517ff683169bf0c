"""Per-venue price sampling with tagged synthetic fallback quotes."""

import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import requests

from src.models.market_data import PriceQuote, symbol_for
from src.services.errors import UnknownVenueError
from src.services.price_feed import PriceFeed
from src.utils.cache import TTLCache
from src.utils.config import VenueConfig, config
from src.utils.event_store import QUOTE_SYNTHESIZED, EventStore
from src.utils.logger import StructuredLogger
from src.utils.trace_context import get_current_trace


@dataclass(frozen=True)
class Venue:
    """A trading venue and how far synthetic quotes for it may stray from the reference."""

    key: str
    name: str
    venue_type: str
    jitter_pct: float  # maximum deviation, in percent, of a synthetic quote


VENUES = {
    "jupiter": Venue("jupiter", "Jupiter", "DEX Aggregator", 1.0),
    "raydium": Venue("raydium", "Raydium", "AMM DEX", 0.75),
    "orca": Venue("orca", "Orca", "AMM DEX", 0.5),
    "serum": Venue("serum", "Serum", "Order Book DEX", 1.25),
}

DEFAULT_VENUES = tuple(VENUES)


def resolve_venue(name: str) -> Venue:
    venue = VENUES.get(name.lower())
    if venue is None:
        raise UnknownVenueError(name)
    return venue


class VenueClient(Protocol):
    """Narrow interface for a real venue price source."""

    def fetch_price(self, asset: str) -> float:
        """Return the venue's USD price for the asset, raising on failure."""
        ...


class JupiterPriceClient:
    """Jupiter price API client (prices keyed by ticker symbol)."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_price(self, asset: str) -> float:
        symbol = symbol_for(asset)
        response = self.session.get(self.base_url, params={"ids": symbol}, timeout=self.timeout)
        response.raise_for_status()
        body = response.json()
        data = body.get("data") if isinstance(body, dict) else None
        entry = data.get(symbol) if isinstance(data, dict) else None
        if not isinstance(entry, dict) or entry.get("price") is None:
            raise ValueError(f"Jupiter returned no price for {symbol}")
        price = float(entry["price"])
        if not math.isfinite(price) or price <= 0:
            raise ValueError(f"Jupiter returned an unusable price for {symbol}: {price}")
        return price


class SyntheticQuoteGenerator:
    """
    Generates clearly tagged synthetic quotes around a reference price.

    Deviation is drawn uniformly from +/- the venue's jitter bound using a
    private, optionally seeded random generator, so a fixed seed yields a
    reproducible quote sequence.
    """

    def __init__(self, seed: int | None = None):
        self._random = random.Random(seed)

    def quote(self, asset: str, venue: Venue, reference_price: float) -> PriceQuote:
        deviation = self._random.uniform(-venue.jitter_pct, venue.jitter_pct) / 100
        return PriceQuote(
            asset=asset,
            venue=venue.key,
            price=reference_price * (1 + deviation),
            observed_at=datetime.now(),
            synthetic=True,
        )


class ProtocolPriceSampler:
    """Produces exactly one quote per requested venue for an asset."""

    def __init__(
        self,
        price_feed: PriceFeed | None = None,
        clients: dict[str, VenueClient] | None = None,
        generator: SyntheticQuoteGenerator | None = None,
        cache: TTLCache | None = None,
        settings: VenueConfig | None = None,
        event_store: EventStore | None = None,
    ):
        """
        Initialize the sampler.

        Args:
            price_feed: Source of reference prices when the caller gives none
            clients: Real venue clients keyed by venue; venues without one are synthesized.
                Defaults to a Jupiter client when a Jupiter URL is configured.
            generator: Synthetic quote strategy
            cache: Cache for real venue quotes
            settings: Venue settings (defaults to the global config)
            event_store: Optional event store for synthesis events
        """
        self.settings = settings or config.venues
        self.price_feed = price_feed
        if clients is None:
            clients = {}
            if self.settings.jupiter_price_url:
                clients["jupiter"] = JupiterPriceClient(
                    self.settings.jupiter_price_url, timeout=self.settings.request_timeout
                )
        self.clients = clients
        self.generator = generator or SyntheticQuoteGenerator(self.settings.synthetic_seed)
        self.cache = cache or TTLCache(default_ttl=self.settings.cache_ttl)
        self.event_store = event_store
        self.logger = StructuredLogger("ProtocolPriceSampler")

    def sample_venues(
        self,
        asset: str,
        venues: list[str] | tuple[str, ...] | None = None,
        reference_price: float | None = None,
    ) -> dict[str, PriceQuote]:
        """
        Quote an asset at each venue.

        Venue fetch failures never propagate; the venue gets a synthetic
        quote instead, tagged ``synthetic=True``.

        Args:
            asset: Asset id
            venues: Venue keys (defaults to every registered venue)
            reference_price: Price synthetic quotes jitter around; looked up
                in the price feed when omitted

        Returns:
            Mapping of venue key to PriceQuote, one per requested venue

        Raises:
            UnknownVenueError: for venue names outside the registry
            UpstreamUnavailable: if a reference price is needed and the feed has none
        """
        resolved = [resolve_venue(name) for name in (venues or DEFAULT_VENUES)]
        trace_id = get_current_trace()

        quotes: dict[str, PriceQuote] = {}
        for venue in resolved:
            quote = self._real_quote(asset, venue, trace_id)
            if quote is None:
                if reference_price is None:
                    reference_price = self._reference_price(asset)
                quote = self.generator.quote(asset, venue, reference_price)
                self._record_synthetic(trace_id, asset, venue, quote.price)
            quotes[venue.key] = quote
        return quotes

    def _real_quote(self, asset: str, venue: Venue, trace_id: str | None) -> PriceQuote | None:
        client = self.clients.get(venue.key)
        if client is None:
            return None

        key = f"{venue.key}:{asset.lower()}"
        cached, found = self.cache.get(key)
        if found:
            return cached

        try:
            price = client.fetch_price(asset)
            quote = PriceQuote(asset=asset, venue=venue.key, price=price, observed_at=datetime.now())
        except Exception as e:
            self.logger.warning(
                f"{venue.name} price fetch failed, using synthetic quote",
                context={"trace_id": trace_id, "venue": venue.key, "asset": asset},
                exception=e,
            )
            return None

        self.cache.set(key, quote)
        return quote

    def _reference_price(self, asset: str) -> float:
        if self.price_feed is None:
            raise ValueError(f"No reference price for {asset} and no price feed configured")
        snapshots = self.price_feed.get_snapshot([asset])
        snapshot = snapshots.get(asset.lower())
        if snapshot is None:
            raise ValueError(f"Price feed has no snapshot for {asset}")
        return snapshot.price_usd

    def _record_synthetic(self, trace_id: str | None, asset: str, venue: Venue, price: float) -> None:
        self.logger.debug(
            "Synthesized venue quote",
            context={"trace_id": trace_id, "venue": venue.key, "asset": asset, "price": price},
        )
        if self.event_store:
            self.event_store.add_event(
                trace_id=trace_id,
                event_type=QUOTE_SYNTHESIZED,
                component="ProtocolPriceSampler",
                message=f"Synthetic quote for {asset} at {venue.name}",
                context={"venue": venue.key, "asset": asset},
            )
