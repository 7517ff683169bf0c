"""Trace context for correlating log entries and events of one signal request."""

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

_trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)


def create_trace() -> str:
    """
    Generate a new unique trace ID and set it in the current context.

    Returns:
        A unique trace ID string (UUID4 format)
    """
    trace_id = str(uuid.uuid4())
    set_trace(trace_id)
    return trace_id


def get_current_trace() -> Optional[str]:
    """Get the current trace ID, or None outside a traced request."""
    return _trace_id_context.get()


def set_trace(trace_id: str) -> None:
    """Set the trace ID in the current context."""
    _trace_id_context.set(trace_id)


def clear_trace() -> None:
    """Clear the trace ID from the current context."""
    _trace_id_context.set(None)


@contextmanager
def trace_scope(trace_id: str | None = None) -> Iterator[str]:
    """
    Run a block under a trace ID, reusing the active one when present.

    The previous trace ID is restored on exit, so nested pipeline calls
    (a batch request generating per-asset signals) share one trace.

    Args:
        trace_id: Explicit trace ID to use; generated if neither this nor
            an active trace exists

    Yields:
        The trace ID in effect inside the block
    """
    active = trace_id or get_current_trace() or str(uuid.uuid4())
    token = _trace_id_context.set(active)
    try:
        yield active
    finally:
        _trace_id_context.reset(token)
