"""Prometheus metrics for component search."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


SEARCH_REQUESTS = Counter(
    "component_search_requests_total",
    "Component search requests",
    ["operation", "outcome"],
)

SEARCH_LATENCY = Histogram(
    "component_search_latency_seconds",
    "Component search latency including permission checks",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

RECORDS_DENIED = Counter(
    "component_search_records_denied_total",
    "Records dropped from search results because READ was not granted",
)

PERMISSION_CHECK_ERRORS = Counter(
    "component_search_permission_check_errors_total",
    "Permission checks that raised and were treated as deny",
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for metrics exposition."""
    return CONTENT_TYPE_LATEST
