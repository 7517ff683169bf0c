"""Metrics calculator for aggregating pipeline events."""

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from src.utils.event_store import (
    ASSET_FAILED,
    FETCH_COMPLETE,
    PREDICTION_COMPLETE,
    PREDICTION_FALLBACK,
    QUOTE_SYNTHESIZED,
    SIGNAL_GENERATED,
    EventStore,
)


@dataclass
class PipelineMetrics:
    """Aggregated statistics over the events currently in the store."""

    total_fetch_attempts: int
    successful_fetches: int
    failed_fetches: int
    fetch_success_rate: float
    average_fetch_duration_ms: float
    signals_generated: int
    asset_failures: int
    average_signal_duration_ms: float
    synthetic_quotes: int
    prediction_fallbacks: int
    predictions_by_source: dict[str, int] = field(default_factory=dict)
    actions: dict[str, int] = field(default_factory=dict)
    uptime_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsCalculator:
    """Calculates metrics from event store data."""

    def __init__(self, event_store: EventStore, start_time: Optional[datetime] = None):
        """
        Initialize the metrics calculator.

        Args:
            event_store: The event store to calculate metrics from
            start_time: Optional start time for uptime calculation (defaults to now)
        """
        self.event_store = event_store
        self.start_time = start_time or datetime.now(timezone.utc)

    def calculate(self) -> PipelineMetrics:
        events = self.event_store.get_all_events()

        fetches = [e for e in events if e.event_type == FETCH_COMPLETE]
        successful_fetches = sum(1 for e in fetches if e.context.get("status") == "success")
        failed_fetches = sum(1 for e in fetches if e.context.get("status") == "failed")

        signals = [e for e in events if e.event_type == SIGNAL_GENERATED]
        predictions = [e for e in events if e.event_type == PREDICTION_COMPLETE]

        return PipelineMetrics(
            total_fetch_attempts=len(fetches),
            successful_fetches=successful_fetches,
            failed_fetches=failed_fetches,
            fetch_success_rate=(successful_fetches / len(fetches) * 100) if fetches else 0.0,
            average_fetch_duration_ms=_average(
                [e.duration_ms for e in fetches if e.duration_ms is not None]
            ),
            signals_generated=len(signals),
            asset_failures=sum(1 for e in events if e.event_type == ASSET_FAILED),
            average_signal_duration_ms=_average(
                [e.duration_ms for e in signals if e.duration_ms is not None]
            ),
            synthetic_quotes=sum(1 for e in events if e.event_type == QUOTE_SYNTHESIZED),
            prediction_fallbacks=sum(1 for e in events if e.event_type == PREDICTION_FALLBACK),
            predictions_by_source=dict(Counter(e.context.get("source") for e in predictions)),
            actions=dict(Counter(e.context.get("action") for e in signals)),
            uptime_seconds=int((datetime.now(timezone.utc) - self.start_time).total_seconds()),
        )
