"""Spot price feed backed by the CoinGecko simple price API."""

import math
import time
from datetime import datetime

import requests

from src.models.market_data import MarketSnapshot
from src.services.errors import InsufficientData, UpstreamUnavailable
from src.utils.cache import TTLCache
from src.utils.config import MarketDataConfig, config
from src.utils.event_store import FETCH_COMPLETE, EventStore
from src.utils.logger import StructuredLogger
from src.utils.trace_context import get_current_trace

SOURCE_NAME = "CoinGecko"

REQUIRED_FIELDS = ("usd", "usd_24h_change", "usd_24h_vol", "usd_market_cap")


def parse_snapshot(asset: str, payload: dict | None, fetched_at: datetime) -> MarketSnapshot:
    """
    Build a MarketSnapshot from one asset's entry of a /simple/price response.

    Raises:
        InsufficientData: if a required field is missing, null or non-finite, or the
            price is not positive
    """
    if not isinstance(payload, dict):
        raise InsufficientData(asset, list(REQUIRED_FIELDS))

    missing = [name for name in REQUIRED_FIELDS if payload.get(name) is None]
    if missing:
        raise InsufficientData(asset, missing)

    try:
        price = float(payload["usd"])
        change = float(payload["usd_24h_change"])
        volume = float(payload["usd_24h_vol"])
        market_cap = float(payload["usd_market_cap"])
    except (TypeError, ValueError) as e:
        raise InsufficientData(asset, f"numeric fields ({e})") from e

    non_finite = [
        f"finite {name}"
        for name, value in zip(REQUIRED_FIELDS, (price, change, volume, market_cap))
        if not math.isfinite(value)
    ]
    if non_finite:
        raise InsufficientData(asset, non_finite)
    if price <= 0:
        raise InsufficientData(asset, "positive usd price")

    return MarketSnapshot(
        asset=asset,
        price_usd=price,
        change_24h_pct=change,
        volume_24h_usd=volume,
        market_cap_usd=market_cap,
        fetched_at=fetched_at,
    )


class PriceFeed:
    """Fetches and caches spot snapshots for sets of assets."""

    def __init__(
        self,
        cache: TTLCache | None = None,
        settings: MarketDataConfig | None = None,
        session: requests.Session | None = None,
        event_store: EventStore | None = None,
    ):
        """
        Initialize the price feed.

        Args:
            cache: Cache for snapshot mappings (one is created with the configured TTL if omitted)
            settings: Market data settings (defaults to the global config)
            session: HTTP session used for requests
            event_store: Optional event store for fetch events
        """
        self.settings = settings or config.market_data
        self.cache = cache or TTLCache(default_ttl=self.settings.cache_ttl)
        self.session = session or requests.Session()
        self.event_store = event_store
        self.logger = StructuredLogger("PriceFeed")

    @staticmethod
    def cache_key(asset_ids: list[str]) -> str:
        return ",".join(sorted({asset.lower() for asset in asset_ids}))

    def get_snapshot(self, asset_ids: list[str]) -> dict[str, MarketSnapshot]:
        """
        Get market snapshots for a set of assets.

        Fresh cached results are returned without a request. When the
        request fails, the last cached result is returned however old it is.

        Args:
            asset_ids: CoinGecko asset ids (e.g. ["solana", "bitcoin"])

        Returns:
            Mapping of asset id to MarketSnapshot; assets the source has no
            usable data for are left out

        Raises:
            ValueError: if asset_ids is empty
            UpstreamUnavailable: if the fetch fails and nothing is cached
        """
        if not asset_ids:
            raise ValueError("asset_ids must not be empty")

        key = self.cache_key(asset_ids)
        cached, found = self.cache.get(key)
        if found:
            self.logger.debug("Serving snapshots from cache", context={"assets": key})
            return dict(cached)

        trace_id = get_current_trace()
        start_time = time.time()
        try:
            snapshots = self._fetch(key.split(","), trace_id)
        except (requests.RequestException, ValueError) as e:
            duration_ms = (time.time() - start_time) * 1000
            self._record_fetch(trace_id, key, "failed", duration_ms, error=str(e))

            stale, has_stale = self.cache.get_stale(key)
            if has_stale:
                self.logger.warning(
                    "Market data fetch failed, serving stale cache",
                    context={
                        "trace_id": trace_id,
                        "source": SOURCE_NAME,
                        "assets": key,
                        "cache_age_seconds": self.cache.age(key),
                    },
                    exception=e,
                )
                return dict(stale)

            self.logger.error(
                "Market data fetch failed with no cached fallback",
                context={"trace_id": trace_id, "source": SOURCE_NAME, "assets": key},
                exception=e,
            )
            raise UpstreamUnavailable(SOURCE_NAME, str(e)) from e

        duration_ms = (time.time() - start_time) * 1000
        self.cache.set(key, snapshots)
        self._record_fetch(trace_id, key, "success", duration_ms, count=len(snapshots))
        return dict(snapshots)

    def _fetch(self, asset_ids: list[str], trace_id: str | None) -> dict[str, MarketSnapshot]:
        self.logger.info(
            "Starting market data fetch",
            context={"trace_id": trace_id, "source": SOURCE_NAME, "assets": asset_ids},
        )

        url = f"{self.settings.base_url}/simple/price"
        params = {
            "ids": ",".join(asset_ids),
            "vs_currencies": "usd",
            "include_market_cap": "true",
            "include_24hr_vol": "true",
            "include_24hr_change": "true",
        }
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers["x-cg-demo-api-key"] = self.settings.api_key

        response = self.session.get(
            url, params=params, headers=headers, timeout=self.settings.request_timeout
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected {SOURCE_NAME} response type: {type(data).__name__}")

        fetched_at = datetime.now()
        snapshots = {}
        for asset in asset_ids:
            try:
                snapshots[asset] = parse_snapshot(asset, data.get(asset), fetched_at)
            except InsufficientData as e:
                self.logger.warning(
                    "Dropping asset with incomplete market data",
                    context={
                        "trace_id": trace_id,
                        "source": SOURCE_NAME,
                        "symbol": asset,
                        "missing": e.missing,
                        "result": "insufficient_data",
                    },
                )

        self.logger.info(
            "Successfully fetched market data",
            context={
                "trace_id": trace_id,
                "source": SOURCE_NAME,
                "result": "success",
                "assets": sorted(snapshots),
            },
        )
        return snapshots

    def _record_fetch(
        self,
        trace_id: str | None,
        key: str,
        status: str,
        duration_ms: float,
        **extra,
    ) -> None:
        if not self.event_store:
            return
        self.event_store.add_event(
            trace_id=trace_id,
            event_type=FETCH_COMPLETE,
            component="PriceFeed",
            message=f"Market data fetch {status}",
            context={"source": SOURCE_NAME, "assets": key, "status": status, **extra},
            duration_ms=duration_ms,
        )
