"""Request-scoped log context.

Holds the ids of the active trace plus the principal and operation a search
runs for, so every log line emitted during that search can be correlated.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING
from uuid import uuid4


if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import SpanContext


@dataclass(frozen=True)
class LogContext:
    """Correlation fields copied into every structured log line."""

    trace_id: str
    span_id: str
    principal: str | None = None
    operation: str | None = None

    def as_log_fields(self) -> dict[str, str]:
        fields = {"trace_id": self.trace_id, "span_id": self.span_id}
        if self.principal:
            fields["principal"] = self.principal
        if self.operation:
            fields["operation"] = self.operation
        return fields


_log_context: ContextVar[LogContext | None] = ContextVar("component_search_log_context", default=None)


def current_log_context() -> LogContext:
    """Return the bound context, or fresh unbound ids when nothing is bound.

    Fresh ids are not stored; each unbound call gets its own.
    """
    ctx = _log_context.get()
    if ctx is None:
        return LogContext(trace_id=uuid4().hex, span_id=uuid4().hex[:16])
    return ctx


@contextmanager
def bind_log_context(**changes: str | None) -> Iterator[LogContext]:
    """Overlay fields on the active context for the duration of the block.

    Example:
        with bind_log_context(principal="bob@example.com", operation="search"):
            logger.info("searching")  # carries principal and operation
    """
    token = _log_context.set(replace(current_log_context(), **changes))
    try:
        yield current_log_context()
    finally:
        _log_context.reset(token)


@contextmanager
def span_log_context(span_context: SpanContext) -> Iterator[LogContext]:
    """Mirror a recording span's ids into the log context.

    Spans from the no-op provider carry invalid ids; the current ids are kept.
    """
    if not span_context.is_valid:
        yield current_log_context()
        return
    with bind_log_context(
        trace_id=format(span_context.trace_id, "032x"),
        span_id=format(span_context.span_id, "016x"),
    ) as ctx:
        yield ctx
