"""API routes exposing the signal pipeline."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.dependencies import (
    get_event_store,
    get_metrics_calculator,
    get_signal_options,
    get_signal_service,
)
from src.models.trading_signal import SignalOptions
from src.services.arbitrage_scanner import format_opportunity
from src.services.errors import InsufficientData
from src.services.signal_service import SignalService
from src.utils.config import config
from src.utils.event_store import EventStore
from src.utils.metrics import MetricsCalculator

router = APIRouter()


@router.get("/signals")
def get_signals(
    assets: Optional[list[str]] = Query(None, description="Asset ids, e.g. solana"),
    options: SignalOptions = Depends(get_signal_options),
    service: SignalService = Depends(get_signal_service),
):
    """
    Generate composite signals for several assets.

    Assets that fail are reported individually under ``failures``; the
    request itself only fails on invalid input.
    """
    return service.generate_signals(assets or config.signals.default_assets, options)


@router.get("/signals/{asset}")
def get_signal(
    asset: str,
    options: SignalOptions = Depends(get_signal_options),
    service: SignalService = Depends(get_signal_service),
):
    """Generate the composite signal, raw opportunities and technical signal for one asset."""
    return service.generate_signal(asset, options)


@router.get("/arbitrage/{asset}")
def get_arbitrage(
    asset: str,
    options: SignalOptions = Depends(get_signal_options),
    service: SignalService = Depends(get_signal_service),
):
    """List cross-venue opportunities for an asset."""
    asset = asset.lower()
    snapshot = service.price_feed.get_snapshot([asset]).get(asset)
    if snapshot is None:
        raise InsufficientData(asset, "market snapshot")

    quotes = service.sampler.sample_venues(
        asset, options.venues, reference_price=snapshot.price_usd
    )
    opportunities = service.scanner.scan(quotes, options.min_profit_pct)
    return {
        "asset": asset,
        "min_profit_pct": options.min_profit_pct,
        "opportunities": [format_opportunity(o) for o in opportunities],
        "count": len(opportunities),
        "spread": service.scanner.analyze_spread(quotes),
        "quotes": list(quotes.values()),
    }


@router.get("/technical/{asset}")
def get_technical(asset: str, service: SignalService = Depends(get_signal_service)):
    """Technical heuristic reading for an asset."""
    asset = asset.lower()
    snapshot = service.price_feed.get_snapshot([asset]).get(asset)
    if snapshot is None:
        raise InsufficientData(asset, "market snapshot")
    return {"snapshot": snapshot, "technical": service.heuristic.evaluate(snapshot)}


@router.get("/debug/metrics")
async def get_metrics(
    calculator: MetricsCalculator = Depends(get_metrics_calculator),
    service: SignalService = Depends(get_signal_service),
):
    """Pipeline metrics plus cache statistics."""
    return {
        "metrics": calculator.calculate().to_dict(),
        "caches": {
            "price_feed": service.price_feed.cache.stats(),
            "venues": service.sampler.cache.stats(),
        },
    }


@router.get("/debug/traces/{trace_id}")
async def get_trace(trace_id: str, store: EventStore = Depends(get_event_store)):
    """All recorded events for one request trace."""
    events = store.get_events_by_trace(trace_id)
    if not events:
        raise HTTPException(status_code=404, detail="Trace not found")
    return {"trace_id": trace_id, "events": [e.to_dict() for e in events], "count": len(events)}
