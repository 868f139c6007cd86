"""Index schema and query construction for component search."""

from component_search.search.query import (
    MATCH_ALL,
    MATCH_NONE,
    ComponentQuery,
    build_query,
    normalize_restrictions,
    quote_term,
)
from component_search.search.schema import (
    CATCH_ALL_FIELD,
    DEFAULT_DESIGN_DOC_ID,
    Analyzer,
    FieldType,
    IndexEntry,
    IndexFieldSpec,
    IndexSchema,
    create_component_schema,
    date_key,
)


__all__ = [
    "CATCH_ALL_FIELD",
    "DEFAULT_DESIGN_DOC_ID",
    "MATCH_ALL",
    "MATCH_NONE",
    "Analyzer",
    "ComponentQuery",
    "FieldType",
    "IndexEntry",
    "IndexFieldSpec",
    "IndexSchema",
    "build_query",
    "create_component_schema",
    "date_key",
    "normalize_restrictions",
    "quote_term",
]
