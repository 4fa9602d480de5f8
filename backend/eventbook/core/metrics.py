"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking mutations',
    ['operation', 'outcome']  # create/cancel, success/not_found/capacity_exceeded/...
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Reservation transaction latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/ok/error
)

# Event bus metrics
events_published = Counter(
    'domain_events_published_total',
    'Domain events handed to the event bus',
    ['subject', 'result']  # ok, error
)

# Notification consumer metrics
notifications_processed = Counter(
    'notifications_processed_total',
    'Deliveries handled by the notification consumer',
    ['subject', 'result']  # created, duplicate, dropped
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(operation: str, outcome: str):
    """Record a reservation outcome. Operation: create, cancel"""
    booking_attempts.labels(operation=operation, outcome=outcome).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()


def record_event_published(subject: str, ok: bool):
    events_published.labels(subject=subject, result="ok" if ok else "error").inc()


def record_notification(subject: str, result: str):
    """Result: created, duplicate, dropped"""
    notifications_processed.labels(subject=subject, result=result).inc()
