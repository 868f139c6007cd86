"""Component search orchestration layer.

Pipeline for paged access-filtered search:
    executor (engine page) -> permission filter -> optional re-sort -> caller

Every call is synchronous and request-scoped. The only shared state is the
immutable index schema and the engine client.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
import logging

from component_search.adapters.search_engine import AbstractSearchEngine
from component_search.domain.model import ComponentRecord, Principal
from component_search.domain.search import ComponentPage, PaginationRequest
from component_search.observability.context import bind_log_context
from component_search.observability.metrics import SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from component_search.observability.tracing import create_span
from component_search.search.query import Restrictions
from component_search.search.schema import IndexSchema
from component_search.service_layer.permissions import PermissionChecker, PermissionFilter
from component_search.service_layer.query_executor import DEFAULT_CHUNK_SIZE, QueryExecutor
from component_search.service_layer.sorting import resolve_sort_key, sort_page


logger = logging.getLogger(__name__)


class ComponentSearchService:
    """High-level component search API.

    Combines the query executor, permission filter and sort resolver behind
    the three public search operations.
    """

    def __init__(
        self,
        engine: AbstractSearchEngine,
        schema: IndexSchema,
        permission_checker: PermissionChecker,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the service with its collaborators.

        Args:
            engine: Search engine client, shared across calls
            schema: Index definition built once at startup
            permission_checker: External capability check used per record
            chunk_size: Maximum hits per engine request for unpaginated search
        """
        self.schema = schema
        self.engine = engine
        self.executor = QueryExecutor(engine, schema, chunk_size=chunk_size)
        self.permission_filter = PermissionFilter(permission_checker)

    def register_schema(self) -> bool:
        """Install the index design document; a no-op when already current.

        Raises:
            SchemaRegistrationError: the engine refused the write (fatal at startup)
        """
        with create_span("component_search.register_schema", attributes={"index.name": self.schema.name}):
            written = self.engine.ensure_design_document(self.schema.to_design_document())
        logger.info(
            "Index %s in %s %s",
            self.schema.name,
            self.schema.design_doc_id,
            "registered" if written else "already registered",
        )
        return written

    def search(self, text: str | None, restrictions: Restrictions | None = None) -> list[ComponentRecord]:
        """All matches in relevance order. No permission filtering."""
        with self._observe("search"):
            return self.executor.search(text, restrictions)

    def search_accessible(
        self,
        text: str | None,
        restrictions: Restrictions | None,
        principal: Principal,
        pagination: PaginationRequest,
    ) -> ComponentPage:
        """One page of components the principal may read.

        The page may hold fewer than ``page_size`` records when some are
        denied; it is not topped up. The envelope is the engine's, computed
        before any re-sort.
        """
        with self._observe("search_accessible", principal):
            sort_key = resolve_sort_key(pagination.sort_column, schema=self.schema)
            envelope, records = self.executor.search_paged(
                text, restrictions, pagination, sort_key, pagination.ascending
            )
            readable = self.permission_filter.filter_readable(records, principal)
            ordered = sort_page(readable, sort_key, pagination.ascending)
            logger.debug(
                "search_accessible: %d/%d readable, sort=%s",
                len(ordered),
                len(records),
                pagination.sort_column.value,
            )
            return ComponentPage(pagination=envelope, components=ordered)

    def search_with_accessibility(
        self,
        text: str | None,
        restrictions: Restrictions | None,
        principal: Principal,
    ) -> list[ComponentRecord]:
        """All matches, each annotated with the principal's permissions. Nothing is dropped."""
        with self._observe("search_with_accessibility", principal):
            records = self.executor.search(text, restrictions)
            return self.permission_filter.annotate(records, principal)

    @staticmethod
    @contextmanager
    def _observe(operation: str, principal: Principal | None = None) -> Generator[None, None, None]:
        """Log context, span, latency and outcome counter around one public operation."""
        outcome = "ok"
        try:
            with (
                bind_log_context(operation=operation, principal=principal.email if principal else None),
                create_span(f"component_search.{operation}"),
                track_latency(SEARCH_LATENCY, operation=operation),
            ):
                yield
        except Exception as exc:
            outcome = type(exc).__name__
            raise
        finally:
            SEARCH_REQUESTS.labels(operation=operation, outcome=outcome).inc()
