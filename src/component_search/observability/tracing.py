"""OpenTelemetry spans around search operations and CouchDB calls.

Spans go to the globally installed provider. Until ``init_tracing`` or an
enabled OTLP export installs an SDK provider, that is the API's no-op
provider and spans are never recorded.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcOTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpOTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from component_search.observability.context import span_log_context


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.sdk.trace.export import SpanExporter
    from opentelemetry.trace import Span, Tracer

    from component_search.config import Settings

logger = logging.getLogger(__name__)

TRACER_NAME = "component_search"


def init_tracing(
    service_name: str = "component-search",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install an SDK tracer provider as the global provider.

    OpenTelemetry allows the global provider to be set once; later calls
    return a provider that is not installed.
    """
    resource = Resource.create({"service.name": service_name, **(resource_attributes or {})})
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def _span_exporter(settings: Settings) -> SpanExporter:
    if settings.otlp_protocol == "grpc":
        return GrpcOTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
    return HttpOTLPSpanExporter(endpoint=settings.otlp_endpoint)


def configure_trace_exporter(settings: Settings, provider: TracerProvider | None = None) -> bool:
    """Attach an OTLP span exporter when ``settings.otlp_enabled``.

    Returns:
        True when an exporter was attached
    """
    if not settings.otlp_enabled:
        return False

    active_provider = provider or trace.get_tracer_provider()
    if not isinstance(active_provider, TracerProvider):
        active_provider = init_tracing(settings.service_name)

    active_provider.add_span_processor(BatchSpanProcessor(_span_exporter(settings)))
    logger.info("OTLP trace export enabled (%s) to %s", settings.otlp_protocol, settings.otlp_endpoint)
    return True


def get_tracer() -> Tracer:
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Run the block inside a span; log lines in it carry the span's ids.

    An exception marks the span as failed, is recorded once, and propagates.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span, span_log_context(span.get_span_context()):
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}"))
            raise
