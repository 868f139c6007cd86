"""Run component queries against the search engine.

No permission filtering and no re-sorting happen here: the executor returns
hits exactly as the engine ranked and paged them.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from component_search.adapters.search_engine import AbstractSearchEngine, EngineHit
from component_search.domain.exceptions import SearchEngineError
from component_search.domain.model import ComponentRecord
from component_search.domain.search import PaginationRequest, PaginationResponse
from component_search.search.query import ComponentQuery, Restrictions, build_query
from component_search.search.schema import FieldType, IndexSchema
from component_search.service_layer.sorting import SortKey


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 200


def _format_date_key(value: Any) -> str | None:
    try:
        key = int(value)
    except (TypeError, ValueError):
        return None
    return f"{key // 10000:04d}-{key // 100 % 100:02d}-{key % 100:02d}"


class QueryExecutor:
    """Execute free text + restrictions against one registered index.

    Args:
        engine: Engine holding the index
        schema: The index definition registered at startup
        chunk_size: Maximum hits per engine request when walking a result set
    """

    def __init__(self, engine: AbstractSearchEngine, schema: IndexSchema, *, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.engine = engine
        self.schema = schema
        self.chunk_size = chunk_size

    def search(self, text: str | None, restrictions: Restrictions | None) -> list[ComponentRecord]:
        """Return every match in relevance order."""
        query = build_query(text, restrictions, self.schema)
        if query.matches_nothing:
            logger.debug("Restriction with only blank values; skipping the engine")
            return []
        records: list[ComponentRecord] = []
        bookmark: str | None = None
        while True:
            result = self.engine.search(self.schema, query, limit=self.chunk_size, bookmark=bookmark)
            records.extend(self._to_record(hit) for hit in result.hits)
            if not result.hits or not result.bookmark or len(records) >= result.total_hits:
                break
            bookmark = result.bookmark

        logger.debug("Query %r matched %d components", query.to_lucene(), len(records))
        return records

    def search_paged(
        self,
        text: str | None,
        restrictions: Restrictions | None,
        pagination: PaginationRequest,
        sort_key: SortKey | None = None,
        ascending: bool = True,
    ) -> tuple[PaginationResponse, list[ComponentRecord]]:
        """Return one engine-ranked page and the engine's bookkeeping for it.

        The page window is always fixed by the engine. ``sort_key`` only tells
        whether the caller will re-sort the page afterwards; it is never sent
        to the engine.
        """
        query = build_query(text, restrictions, self.schema)

        bookmark = pagination.page_token
        total: int | None = None
        if query.matches_nothing:
            total = 0
        elif bookmark is None and pagination.page_offset:
            bookmark, total = self._skip(query, pagination.page_offset)

        if total is not None and total <= pagination.page_offset:
            hits: list[EngineHit] = []
            next_token = None
        else:
            result = self.engine.search(self.schema, query, limit=pagination.page_size, bookmark=bookmark)
            hits, total, next_token = result.hits, result.total_hits, result.bookmark

        records = [self._to_record(hit) for hit in hits]
        response = PaginationResponse(
            total_row_count=total,
            page_offset=pagination.page_offset,
            page_size=pagination.page_size,
            sort_column=pagination.sort_column,
            ascending=ascending,
            next_page_token=next_token,
        )
        logger.debug(
            "Page offset=%d size=%d returned %d of %d components (re-sort: %s)",
            pagination.page_offset,
            pagination.page_size,
            len(records),
            total,
            sort_key is not None,
        )
        return response, records

    def _skip(self, query: ComponentQuery, offset: int) -> tuple[str | None, int]:
        """Walk bookmarks past the first ``offset`` hits.

        Returns the bookmark positioned at ``offset`` and the total hit count.
        """
        remaining = offset
        bookmark: str | None = None
        total = 0
        while remaining > 0:
            result = self.engine.search(self.schema, query, limit=min(remaining, self.chunk_size), bookmark=bookmark)
            total = result.total_hits
            remaining -= len(result.hits)
            bookmark = result.bookmark
            if not result.hits or not bookmark:
                break
        return bookmark, total

    def _to_record(self, hit: EngineHit) -> ComponentRecord:
        if hit.doc is not None:
            raw = hit.doc
        else:
            # Without include_docs only stored fields come back
            raw = {"_id": hit.id, "type": self.schema.document_type, **hit.fields}
            for spec in self.schema:
                if spec.kind is FieldType.DOUBLE and spec.name in raw:
                    raw[spec.name] = _format_date_key(raw[spec.name])
        try:
            return ComponentRecord.model_validate(raw)
        except ValidationError as exc:
            raise SearchEngineError(f"Engine returned a malformed component document '{hit.id}': {exc}") from exc
