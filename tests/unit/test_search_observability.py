"""Tests for logging, tracing and metrics around component search."""

import io
import json
import logging
import sys
from unittest.mock import Mock

from opentelemetry import trace as trace_api
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import INVALID_SPAN_CONTEXT, StatusCode
from pydantic import SecretStr
import pytest

from component_search.config import Settings
from component_search.domain.model import Principal, RequestedAction
from component_search.domain.search import PaginationRequest
from component_search.observability import (
    SEARCH_LATENCY,
    JsonFormatter,
    LogContext,
    bind_log_context,
    configure_logging,
    configure_trace_exporter,
    create_span,
    current_log_context,
    get_metrics,
    get_metrics_content_type,
    init_tracing,
    span_log_context,
    track_latency,
)
from component_search.observability import tracing as tracing_module


def _record(msg="test message", level=logging.INFO, name="component_search.service_layer.search_service"):
    return logging.LogRecord(name=name, level=level, pathname="x.py", lineno=1, msg=msg, args=(), exc_info=None)


def _format(record) -> dict:
    return json.loads(JsonFormatter().format(record))


def _setup_exporter() -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    provider = trace_api.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        provider = init_tracing("test-service")
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@pytest.mark.unit
class TestJsonFormatter:
    def test_format_includes_log_context_and_component(self):
        data = _format(_record())

        assert data["message"] == "test message"
        assert data["level"] == "INFO"
        assert data["component"] == "search_service"
        assert len(data["trace_id"]) == 32
        assert "principal" not in data

    def test_foreign_loggers_have_no_component(self):
        assert "component" not in _format(_record(name="httpx._client"))

    def test_bound_principal_and_operation_are_attached(self):
        with bind_log_context(principal="bob@example.com", operation="search_accessible"):
            data = _format(_record())

        assert data["principal"] == "bob@example.com"
        assert data["operation"] == "search_accessible"

    def test_extra_fields_are_included_and_secrets_redacted(self):
        record = _record()
        record.index = "components"
        record.couchdb_password = "s3cret"
        record.credentials = SecretStr("hidden")

        data = _format(record)

        assert data["index"] == "components"
        assert data["couchdb_password"] == "[REDACTED]"
        assert data["credentials"] == "[REDACTED]"

    def test_long_messages_and_extras_are_clipped(self):
        record = _record(msg="x" * 5000)
        record.query = "q" * 800

        data = _format(record)

        assert len(data["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3
        assert data["query"].endswith("...")
        assert len(data["query"]) == JsonFormatter.MAX_EXTRA_LEN + 3

    def test_exceptions_are_formatted(self):
        try:
            raise RuntimeError("engine down")
        except RuntimeError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        assert "RuntimeError: engine down" in _format(record)["exception"]

    def test_domain_values_are_serialized(self):
        record = _record()
        record.principal_obj = Principal(email="bob@example.com")
        record.actions = {RequestedAction.WRITE, RequestedAction.READ}
        record.raw = b"ok"

        data = _format(record)

        assert data["principal_obj"]["email"] == "bob@example.com"
        assert data["actions"] == ["READ", "WRITE"]
        assert data["raw"] == "ok"


@pytest.mark.unit
class TestLogContext:
    def test_unbound_calls_get_fresh_ids_each_time(self):
        first = current_log_context()
        second = current_log_context()

        assert len(first.trace_id) == 32
        assert len(first.span_id) == 16
        assert first.trace_id != second.trace_id

    def test_unbound_log_lines_do_not_share_a_trace(self):
        assert _format(_record())["trace_id"] != _format(_record())["trace_id"]

    def test_binding_is_scoped_to_the_block(self):
        with bind_log_context(operation="search") as outer:
            with bind_log_context(principal="alice") as ctx:
                assert ctx.principal == "alice"
                assert ctx.trace_id == outer.trace_id

            assert current_log_context() == outer

        assert current_log_context().trace_id != outer.trace_id

    def test_log_fields_skip_unset_values(self):
        assert LogContext("t", "s").as_log_fields() == {"trace_id": "t", "span_id": "s"}

    def test_invalid_span_keeps_current_ids(self):
        with bind_log_context(operation="search") as before, span_log_context(INVALID_SPAN_CONTEXT) as ctx:
            assert ctx == before


@pytest.mark.unit
class TestTracing:
    def test_init_tracing_applies_resource_attributes(self):
        provider = init_tracing("test-service", resource_attributes={"service.version": "2.0.0"})

        assert provider.resource.attributes["service.name"] == "test-service"
        assert provider.resource.attributes["service.version"] == "2.0.0"

    def test_create_span_records_attributes(self):
        exporter = _setup_exporter()

        with create_span("component_search.test", attributes={"index.name": "components"}):
            pass

        span = exporter.get_finished_spans()[-1]
        assert span.name == "component_search.test"
        assert span.attributes["index.name"] == "components"

    def test_create_span_marks_errors_and_reraises(self):
        exporter = _setup_exporter()

        with pytest.raises(ValueError, match="boom"), create_span("component_search.failing"):
            raise ValueError("boom")

        span = exporter.get_finished_spans()[-1]
        assert span.status.status_code == StatusCode.ERROR
        assert span.status.description == "ValueError: boom"
        assert [event.name for event in span.events] == ["exception"]

    def test_log_lines_inside_a_span_carry_its_ids(self):
        _setup_exporter()

        with bind_log_context(principal="bob@example.com"), create_span("component_search.ids") as span:
            span_context = span.get_span_context()
            data = _format(_record())

        assert data["trace_id"] == format(span_context.trace_id, "032x")
        assert data["span_id"] == format(span_context.span_id, "016x")
        assert data["principal"] == "bob@example.com"

    def test_service_operations_are_traced(self, service, principal):
        exporter = _setup_exporter()

        service.search_accessible("library", None, principal, PaginationRequest(page_size=5))

        names = [span.name for span in exporter.get_finished_spans()]
        assert "component_search.search_accessible" in names

    def test_get_tracer(self):
        assert tracing_module.get_tracer() is not None

    def test_trace_exporter_disabled_by_default(self, monkeypatch):
        exporter_cls = Mock()
        monkeypatch.setattr(tracing_module, "GrpcOTLPSpanExporter", exporter_cls)

        assert configure_trace_exporter(Settings()) is False
        exporter_cls.assert_not_called()

    def test_trace_exporter_http(self, monkeypatch):
        monkeypatch.setenv("OTLP_ENABLED", "true")
        monkeypatch.setenv("OTLP_PROTOCOL", "http")
        monkeypatch.setenv("OTLP_ENDPOINT", "http://collector:4318/v1/traces")
        provider = init_tracing("test-service")
        exporter_cls = Mock(return_value=InMemorySpanExporter())
        monkeypatch.setattr(tracing_module, "HttpOTLPSpanExporter", exporter_cls)
        add_processor = Mock()
        provider.add_span_processor = add_processor  # type: ignore[method-assign]

        assert configure_trace_exporter(Settings(), provider=provider) is True

        exporter_cls.assert_called_once_with(endpoint="http://collector:4318/v1/traces")
        add_processor.assert_called_once()

    def test_trace_exporter_grpc_inits_provider_when_missing(self, monkeypatch):
        monkeypatch.setenv("OTLP_ENABLED", "true")
        for name in ("OTLP_PROTOCOL", "OTLP_ENDPOINT", "OTLP_INSECURE"):
            monkeypatch.delenv(name, raising=False)
        exporter_cls = Mock(return_value=InMemorySpanExporter())
        init = Mock(wraps=tracing_module.init_tracing)
        monkeypatch.setattr(tracing_module, "GrpcOTLPSpanExporter", exporter_cls)
        monkeypatch.setattr(tracing_module, "init_tracing", init)

        configure_trace_exporter(Settings(), provider=object())

        exporter_cls.assert_called_once_with(endpoint="http://localhost:4317", insecure=True)
        init.assert_called_once_with("component-search")


@pytest.mark.unit
class TestMetrics:
    def test_metrics_exposition_names_search_series(self, service):
        service.search("library")

        output = get_metrics()

        assert b"component_search_requests_total" in output
        assert b"component_search_latency_seconds" in output
        assert get_metrics_content_type().startswith("text/plain")

    def test_track_latency_observes_even_on_error(self):
        histogram = SEARCH_LATENCY.labels(operation="unit-test")
        before = histogram._sum.get()

        with pytest.raises(RuntimeError), track_latency(SEARCH_LATENCY, operation="unit-test"):
            raise RuntimeError("fail")

        assert histogram._sum.get() > before


@pytest.mark.unit
class TestConfigureLogging:
    def test_json_handler_and_level(self):
        handler = configure_logging(level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert root.handlers == [handler]
        assert isinstance(handler.formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_plain_text_formatter(self):
        handler = configure_logging(level="INFO", json_output=False)

        assert not isinstance(handler.formatter, JsonFormatter)
        assert "%(asctime)s" in handler.formatter._style._fmt

    def test_logger_overrides_win_over_defaults(self):
        configure_logging(level="INFO", logger_levels={"httpx": "DEBUG", "component_search.adapters": "ERROR"})

        assert logging.getLogger("httpx").level == logging.DEBUG
        assert logging.getLogger("component_search.adapters").level == logging.ERROR

    def test_service_logs_carry_the_principal(self, service, principal):
        stream = io.StringIO()
        configure_logging(level="DEBUG", stream=stream)

        service.search_accessible("library", None, principal, PaginationRequest(page_size=5))

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        service_lines = [line for line in lines if line["logger"].endswith("search_service")]
        assert service_lines
        assert all(line["principal"] == "bob@example.com" for line in service_lines)
        assert all(line["operation"] == "search_accessible" for line in service_lines)
