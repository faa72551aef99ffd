"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

from hrnotify.models.notification import EventType

_KNOWN_EVENT_TYPES = frozenset(event_type.value for event_type in EventType)

# Queue metrics
NOTIFICATIONS_ENQUEUED = Counter(
    "hrnotify_notifications_enqueued_total",
    "Total notifications accepted by the dispatch queue",
    ["event_type"],
)

NOTIFICATIONS_REJECTED = Counter(
    "hrnotify_notifications_rejected_total",
    "Total enqueue calls refused by the dispatch queue",
    ["reason"],
)

NOTIFICATION_QUEUE_LENGTH = Gauge(
    "hrnotify_notification_queue_length",
    "Number of notifications waiting in the dispatch queue",
)

# Delivery metrics
DELIVERY_ATTEMPTS = Counter(
    "hrnotify_delivery_attempts_total",
    "Delivery attempts by outcome",
    ["outcome"],
)

DELIVERY_LATENCY = Histogram(
    "hrnotify_delivery_latency_seconds",
    "Time spent in the sender per attempt",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

PERSISTENCE_FAILURES = Counter(
    "hrnotify_persistence_failures_total",
    "Store updates that failed after a delivery attempt",
    ["operation"],
)

# Retry scheduler metrics
RETRY_SWEEPS = Counter(
    "hrnotify_retry_sweeps_total",
    "Retry scheduler sweeps by result",
    ["status"],
)

RETRIES_RESUBMITTED = Counter(
    "hrnotify_retries_resubmitted_total",
    "Due notifications put back on the dispatch queue",
)


def event_type_label(event_type: str) -> str:
    """Map a producer event tag to a bounded label value."""
    return event_type if event_type in _KNOWN_EVENT_TYPES else "other"
