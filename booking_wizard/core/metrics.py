"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry
import time
from functools import wraps
from typing import Callable

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

wizard_transitions = Counter(
    'wizard_transitions_total',
    'Booking wizard step transitions',
    ['from_step', 'to_step'],
    registry=registry
)

wizard_validation_failures = Counter(
    'wizard_validation_failures_total',
    'Step submissions rejected by validation',
    ['step'],
    registry=registry
)

active_wizards = Gauge(
    'active_wizards',
    'Number of open booking wizards',
    registry=registry
)

distance_lookups = Counter(
    'distance_lookups_total',
    'Route distance lookups by outcome',
    ['outcome'],
    registry=registry
)

distance_cache_hits = Counter(
    'distance_cache_hits_total',
    'Route distance lookups served from cache',
    registry=registry
)

distance_cache_misses = Counter(
    'distance_cache_misses_total',
    'Route distance lookups that missed the cache',
    registry=registry
)

booking_submissions = Counter(
    'booking_submissions_total',
    'Booking submissions by outcome',
    ['outcome'],
    registry=registry
)

booking_submission_duration = Histogram(
    'booking_submission_duration_seconds',
    'Booking submission duration in seconds',
    ['outcome'],
    registry=registry
)

notification_dispatches = Counter(
    'notification_dispatches_total',
    'Booking notification dispatch attempts',
    ['role', 'status'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)


def track_outcome(counter: Counter, histogram: Histogram):
    """Decorator that records the outcome label returned by an async call.

    The wrapped coroutine must return an object with a ``metric_label``
    attribute; exceptions are recorded as ``error`` and re-raised.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                duration = time.time() - start_time
                counter.labels(outcome='error').inc()
                histogram.labels(outcome='error').observe(duration)
                raise
            duration = time.time() - start_time
            label = getattr(result, "metric_label", "unknown")
            counter.labels(outcome=label).inc()
            histogram.labels(outcome=label).observe(duration)
            return result
        return wrapper
    return decorator


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    from prometheus_client import generate_latest
    return generate_latest(registry).decode('utf-8')
