"""CouchDB Nouveau adapter.

Talks to CouchDB over HTTP with a shared ``httpx.Client``:
- design document install: ``GET``/``PUT /{db}/_design/{name}``
- search: ``POST /{db}/_design/{name}/_nouveau/{index}``

Failures are mapped onto the component search error taxonomy and never retried
here; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from opentelemetry.trace import SpanKind

from component_search.adapters.search_engine import AbstractSearchEngine, EngineHit, EngineResult
from component_search.domain.exceptions import (
    EngineUnavailableError,
    InvalidQueryError,
    SchemaRegistrationError,
    SearchEngineError,
)
from component_search.observability.tracing import create_span


if TYPE_CHECKING:
    from component_search.config import Settings
    from component_search.search.query import ComponentQuery
    from component_search.search.schema import IndexSchema

logger = logging.getLogger(__name__)


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("reason") or body.get("error") or body)
    return str(body)


def _same_index(existing: dict[str, Any], wanted: dict[str, Any]) -> bool:
    existing_indexes = existing.get("nouveau") or {}
    return all(existing_indexes.get(name) == definition for name, definition in wanted.get("nouveau", {}).items())


class NouveauSearchEngine(AbstractSearchEngine):
    """Search engine backed by a CouchDB database with Nouveau enabled.

    Args:
        client: Configured HTTP client whose ``base_url`` points at CouchDB
        database: Database holding the component documents
    """

    def __init__(self, client: httpx.Client, database: str) -> None:
        self._client = client
        self._database = database

    @classmethod
    def from_settings(cls, settings: Settings) -> NouveauSearchEngine:
        """Build an engine with its own HTTP client from application settings."""
        auth = None
        if settings.couchdb_username:
            auth = httpx.BasicAuth(settings.couchdb_username, settings.couchdb_password.get_secret_value())
        timeout = httpx.Timeout(settings.http_timeout, connect=settings.http_connect_timeout)
        client = httpx.Client(
            base_url=settings.couchdb_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        return cls(client, settings.couchdb_database)

    def _doc_path(self, doc_id: str) -> str:
        return f"/{quote(self._database, safe='')}/{doc_id}"

    def ensure_design_document(self, design_doc: dict[str, Any]) -> bool:
        doc_id = design_doc["_id"]
        path = self._doc_path(doc_id)

        with create_span("couchdb.design_document.ensure", kind=SpanKind.CLIENT, attributes={"db.ddoc": doc_id}):
            # A 409 means another process wrote concurrently: re-read once and compare again
            for _attempt in range(2):
                try:
                    existing = self._get_existing(path)
                    if existing is not None and _same_index(existing, design_doc):
                        logger.debug("Design document %s already up to date", doc_id)
                        return False

                    body = self._merge(existing, design_doc)
                    response = self._client.put(path, json=body)
                except (httpx.HTTPError, ValueError) as exc:
                    raise SchemaRegistrationError(doc_id, str(exc)) from exc

                if response.status_code == httpx.codes.CONFLICT:
                    logger.info("Design document %s changed concurrently, re-reading", doc_id)
                    continue
                if response.is_error:
                    raise SchemaRegistrationError(doc_id, f"HTTP {response.status_code}: {_error_reason(response)}")

                logger.info("Design document %s %s", doc_id, "updated" if existing else "created")
                return True

        raise SchemaRegistrationError(doc_id, "conflicting concurrent updates")

    def _get_existing(self, path: str) -> dict[str, Any] | None:
        response = self._client.get(path)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _merge(existing: dict[str, Any] | None, design_doc: dict[str, Any]) -> dict[str, Any]:
        if existing is None:
            return dict(design_doc)
        # Keep views and sibling indexes other writers placed in the same design document
        merged = dict(existing)
        merged["nouveau"] = {**(existing.get("nouveau") or {}), **design_doc.get("nouveau", {})}
        return merged

    def search(
        self,
        schema: IndexSchema,
        query: ComponentQuery,
        *,
        limit: int,
        bookmark: str | None = None,
    ) -> EngineResult:
        path = f"{self._doc_path(schema.design_doc_id)}/_nouveau/{quote(schema.name, safe='')}"
        payload: dict[str, Any] = {"q": query.to_lucene(), "limit": limit, "include_docs": True}
        if bookmark:
            payload["bookmark"] = bookmark

        attributes = {"db.system": "couchdb", "db.name": self._database, "search.limit": limit}
        with create_span("couchdb.nouveau.search", kind=SpanKind.CLIENT, attributes=attributes) as span:
            try:
                response = self._client.post(path, json=payload)
            except httpx.TimeoutException as exc:
                raise EngineUnavailableError(f"Search engine timed out: {exc}") from exc
            except httpx.TransportError as exc:
                raise EngineUnavailableError(f"Search engine unreachable: {exc}") from exc

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code == httpx.codes.BAD_REQUEST:
                raise InvalidQueryError(f"Query rejected: {_error_reason(response)}", response.status_code)
            if response.status_code >= 500:
                raise EngineUnavailableError(
                    f"Search engine error: {_error_reason(response)}", response.status_code
                )
            if response.is_error:
                raise SearchEngineError(
                    f"Search failed with HTTP {response.status_code}: {_error_reason(response)}",
                    response.status_code,
                )

            data = response.json()

        hits = [
            EngineHit(
                id=hit["id"],
                doc=hit.get("doc"),
                fields=hit.get("fields") or {},
                order=tuple(hit.get("order") or ()),
            )
            for hit in data.get("hits", [])
        ]
        logger.debug("Nouveau returned %d of %s hits", len(hits), data.get("total_hits"))
        return EngineResult(
            total_hits=int(data.get("total_hits", len(hits))),
            hits=hits,
            bookmark=data.get("bookmark"),
        )

    def close(self) -> None:
        self._client.close()
