"""Per-attempt trace context."""

import uuid
from contextvars import ContextVar
from typing import Any

import structlog

# Context variable for trace ID
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Get current trace ID, or an empty string outside a trace."""
    return _trace_id.get()


class DeliveryTrace:
    """Bind a trace ID and notification ID to the log context for one attempt.

    Usage:
        with DeliveryTrace(notification.id) as trace_id:
            ...
    """

    def __init__(self, notification_id: str | None, trace_id: str | None = None):
        self._notification_id = notification_id
        self._trace_id = trace_id or generate_trace_id()
        self._token = None

    def __enter__(self) -> str:
        self._token = _trace_id.set(self._trace_id)
        structlog.contextvars.bind_contextvars(
            trace_id=self._trace_id,
            notification_id=self._notification_id,
        )
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars("trace_id", "notification_id")
        if self._token is not None:
            _trace_id.reset(self._token)
            self._token = None
