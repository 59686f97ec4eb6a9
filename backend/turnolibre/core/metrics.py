"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total direct reservation attempts',
    ['status']  # reserved, reclaimed, conflict, error
)

# Hold lifecycle metrics
hold_transitions = Counter(
    'hold_transitions_total',
    'Hold state transitions',
    ['transition']  # created, confirmed, cancelled, expired, resent
)

confirm_failures = Counter(
    'hold_confirm_failures_total',
    'Rejected hold confirmations',
    ['reason']  # not_found, invalid_state, expired, invalid_code
)

# Payment metrics
payment_webhooks = Counter(
    'payment_webhooks_total',
    'Payment webhook deliveries',
    ['target', 'result']  # booking/club, applied/duplicate/ignored/error
)

# Sweeper metrics
sweeper_expired = Counter(
    'sweeper_expired_total',
    'Entities expired by the periodic sweeper',
    ['job']  # holds, featured_clubs
)

# Grid metrics
grid_build_latency = Histogram(
    'availability_build_latency_seconds',
    'Weekly availability build latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: reserved, reclaimed, conflict, error"""
    booking_attempts.labels(status=status).inc()


def record_hold_transition(transition: str):
    hold_transitions.labels(transition=transition).inc()


def record_confirm_failure(reason: str):
    confirm_failures.labels(reason=reason).inc()


def record_webhook(target: str, result: str):
    payment_webhooks.labels(target=target, result=result).inc()


def record_sweep(job: str, count: int):
    if count:
        sweeper_expired.labels(job=job).inc(count)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
