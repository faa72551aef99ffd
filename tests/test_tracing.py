"""Tests for per-attempt trace context."""

import structlog

from hrnotify.observability.tracing import DeliveryTrace, get_trace_id


def test_delivery_trace_binds_and_restores_context() -> None:
    assert get_trace_id() == ""

    with DeliveryTrace("17", trace_id="abc123") as trace_id:
        assert trace_id == "abc123"
        assert get_trace_id() == "abc123"
        assert structlog.contextvars.get_contextvars() == {
            "trace_id": "abc123",
            "notification_id": "17",
        }

    assert get_trace_id() == ""
    assert "trace_id" not in structlog.contextvars.get_contextvars()


def test_delivery_trace_generates_ids() -> None:
    with DeliveryTrace("1") as first:
        pass
    with DeliveryTrace("1") as second:
        pass

    assert len(first) == 16
    assert first != second
