"""FastAPI dependencies providing the shared pipeline services."""

from fastapi import Query

from src.models.trading_signal import RiskTolerance, SignalOptions
from src.services.signal_service import SignalService
from src.utils.config import config
from src.utils.event_store import EventStore
from src.utils.metrics import MetricsCalculator

# Process-wide instances; the services hold the TTL caches shared by requests
event_store = EventStore()
metrics_calculator = MetricsCalculator(event_store)
_signal_service: SignalService | None = None


def get_event_store() -> EventStore:
    return event_store


def get_metrics_calculator() -> MetricsCalculator:
    return metrics_calculator


def get_signal_service() -> SignalService:
    """Return the shared SignalService, creating it on first use."""
    global _signal_service
    if _signal_service is None:
        _signal_service = SignalService(event_store=event_store)
    return _signal_service


def get_signal_options(
    min_profit_pct: float | None = Query(
        None, ge=0, description="Minimum arbitrage profit in percent"
    ),
    risk_tolerance: RiskTolerance = Query(RiskTolerance.MEDIUM),
    venues: list[str] | None = Query(None, description="Venues to compare"),
    timeout_ms: int | None = Query(None, gt=0, description="Prediction tier timeout"),
) -> SignalOptions:
    """
    Build per-request pipeline options from query parameters.

    Raises:
        ValueError: if the options are inconsistent (mapped to 400)
    """
    return SignalOptions(
        min_profit_pct=config.signals.min_profit_pct if min_profit_pct is None else min_profit_pct,
        risk_tolerance=risk_tolerance,
        venues=tuple(venues) if venues else None,
        timeout_ms=timeout_ms,
    )
