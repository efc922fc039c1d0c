"""Prometheus metrics for the dashboard cache.

Labels stay low-cardinality: cache status and refresh outcome only, never
identities or upstream paths.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CACHE_RESPONSES_TOTAL = Counter(
    "dashboard_cache_responses_total",
    "Dashboard read responses by cache status.",
    labelnames=("status",),
)

REFRESH_TOTAL = Counter(
    "dashboard_refresh_total",
    "Upstream refresh operations by outcome (success/failure).",
    labelnames=("outcome",),
)

REFRESH_DURATION_SECONDS = Histogram(
    "dashboard_refresh_duration_seconds",
    "Duration of upstream refresh operations in seconds.",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


def observe_cache_response(status: str) -> None:
    CACHE_RESPONSES_TOTAL.labels(status=status).inc()


def observe_refresh(*, outcome: str, duration_seconds: float) -> None:
    REFRESH_TOTAL.labels(outcome=outcome).inc()
    REFRESH_DURATION_SECONDS.observe(max(0.0, duration_seconds))


__all__ = [
    "CACHE_RESPONSES_TOTAL",
    "REFRESH_DURATION_SECONDS",
    "REFRESH_TOTAL",
    "observe_cache_response",
    "observe_refresh",
]
