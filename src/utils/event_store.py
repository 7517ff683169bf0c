"""In-memory event store for pipeline operations (fetches, fallbacks, signals)."""

import threading
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

# Event types recorded by the pipeline
FETCH_COMPLETE = "fetch_complete"
QUOTE_SYNTHESIZED = "quote_synthesized"
PREDICTION_FALLBACK = "prediction_fallback"
PREDICTION_COMPLETE = "prediction_complete"
SIGNAL_GENERATED = "signal_generated"
ASSET_FAILED = "asset_failed"


@dataclass
class Event:
    """Represents a pipeline event."""

    id: str
    timestamp: str
    trace_id: str | None
    event_type: str
    component: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    duration_ms: float | None = None
    recorded_at: float = field(default=0.0, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary, excluding None values and internals."""
        result = asdict(self)
        result.pop("recorded_at", None)
        return {k: v for k, v in result.items() if v is not None}


class EventStore:
    """Bounded, thread-safe event store; events older than max_age are dropped on write."""

    def __init__(self, max_size: int = 10000, max_age_seconds: int = 3600, clock=time.monotonic):
        """
        Initialize the event store.

        Args:
            max_size: Maximum number of events to keep
            max_age_seconds: Maximum age of events in seconds
            clock: Monotonic clock used for age checks
        """
        self.max_size = max_size
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._events: deque[Event] = deque(maxlen=max_size)
        self._lock = threading.RLock()

    def add_event(
        self,
        trace_id: str | None,
        event_type: str,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> Event:
        """Record an event and return it."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            event = Event(
                id=str(uuid.uuid4()),
                timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                trace_id=trace_id,
                event_type=event_type,
                component=component,
                message=message,
                context=context or {},
                duration_ms=duration_ms,
                recorded_at=now,
            )
            self._events.append(event)
            return event

    def _prune(self, now: float) -> int:
        cutoff = now - self.max_age_seconds
        removed = 0
        while self._events and self._events[0].recorded_at < cutoff:
            self._events.popleft()
            removed += 1
        return removed

    def clear_old_events(self) -> int:
        """Drop events older than max_age_seconds and return how many were removed."""
        with self._lock:
            return self._prune(self._clock())

    def get_events_by_trace(self, trace_id: str) -> list[Event]:
        """All events of one trace in chronological order."""
        with self._lock:
            return [event for event in self._events if event.trace_id == trace_id]

    def get_events_by_type(self, event_type: str, limit: int = 100) -> list[Event]:
        """Most recent events of a type, oldest first."""
        with self._lock:
            matching_events = [event for event in self._events if event.event_type == event_type]
            return matching_events[-limit:] if limit > 0 else []

    def get_all_events(self) -> list[Event]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._events)
