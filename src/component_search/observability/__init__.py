"""Observability for component search: JSON logging, tracing and metrics."""

from component_search.observability.context import (
    LogContext,
    bind_log_context,
    current_log_context,
    span_log_context,
)
from component_search.observability.logging import JsonFormatter, configure_logging
from component_search.observability.metrics import (
    PERMISSION_CHECK_ERRORS,
    RECORDS_DENIED,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from component_search.observability.tracing import configure_trace_exporter, create_span, get_tracer, init_tracing


__all__ = [
    "PERMISSION_CHECK_ERRORS",
    "RECORDS_DENIED",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "LogContext",
    "bind_log_context",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "current_log_context",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_tracing",
    "span_log_context",
    "track_latency",
]
