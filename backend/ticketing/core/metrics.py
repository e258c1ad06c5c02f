"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Order metrics
order_attempts = Counter(
    'order_attempts_total',
    'Total place_order calls by final outcome',
    ['outcome']  # placed, rejected_<code>, contention, error
)

order_latency = Histogram(
    'order_latency_seconds',
    'place_order latency including optimistic restarts',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

order_restarts = Counter(
    'order_restarts_total',
    'Optimistic restarts of the order transaction',
    ['reason']  # version_conflict, lock_contention, integrity
)

tickets_issued = Counter(
    'tickets_issued_total',
    'Tickets created by committed orders'
)

ticket_code_collisions = Counter(
    'ticket_code_collisions_total',
    'Generated ticket codes that were already taken'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint body."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_order_outcome(outcome: str):
    """Record a finished place_order call. Outcome: placed, rejected_<code>, contention, error"""
    order_attempts.labels(outcome=outcome).inc()


def record_order_restart(reason: str):
    order_restarts.labels(reason=reason).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
