"""Secondary ordering of search result pages.

A sort column resolves to a key function through two fixed lookup tables:
column -> record field, then field -> key. ``NONE``, unknown identifiers and
failed lookups all resolve to ``None``, which keeps the engine's relevance order.

Re-sorting only reorders a page the engine already fixed; it never changes
which records are on the page.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import logging
from types import MappingProxyType
from typing import Any

from component_search.domain.exceptions import SortResolutionError
from component_search.domain.model import ComponentRecord
from component_search.domain.search import SortColumn
from component_search.search.schema import IndexSchema, date_key


logger = logging.getLogger(__name__)

SortKey = Callable[[ComponentRecord], Any]

SORT_COLUMN_FIELDS: Mapping[SortColumn, str] = MappingProxyType(
    {
        SortColumn.BY_NAME: "name",
        SortColumn.BY_CREATEDON: "createdOn",
        SortColumn.BY_TYPE: "componentType",
    }
)


def _text_key(attribute: str) -> SortKey:
    # Missing values first, then case-insensitive
    def key(record: ComponentRecord) -> tuple[bool, str]:
        value = getattr(record, attribute)
        return (value is not None, value.casefold() if value else "")

    return key


def _created_on_key(record: ComponentRecord) -> tuple[bool, int]:
    numeric = date_key(record.created_on)
    return (numeric is not None, numeric or 0)


FIELD_SORT_KEYS: Mapping[str, SortKey] = MappingProxyType(
    {
        "name": _text_key("name"),
        "createdOn": _created_on_key,
        "componentType": _text_key("component_type"),
    }
)


def sort_key_for_field(
    field_name: str,
    *,
    schema: IndexSchema | None = None,
    field_keys: Mapping[str, SortKey] = FIELD_SORT_KEYS,
) -> SortKey:
    """Look up the key function for a record field.

    Raises:
        SortResolutionError: no key is registered, or the schema does not store the field
    """
    if schema is not None and not schema.is_stored(field_name):
        raise SortResolutionError(f"Field '{field_name}' is not stored in index '{schema.name}'")
    try:
        return field_keys[field_name]
    except KeyError as exc:
        raise SortResolutionError(f"No sort key registered for component field '{field_name}'") from exc


def resolve_sort_key(
    identifier: SortColumn | str | None,
    *,
    schema: IndexSchema | None = None,
    field_keys: Mapping[str, SortKey] = FIELD_SORT_KEYS,
) -> SortKey | None:
    """Resolve an external sort column identifier to a key function.

    Returns None (relevance order) for ``NONE``, unknown identifiers and
    failed lookups. Never raises.
    """
    column = SortColumn.parse(identifier)
    field_name = SORT_COLUMN_FIELDS.get(column)
    if field_name is None:
        return None
    try:
        return sort_key_for_field(field_name, schema=schema, field_keys=field_keys)
    except SortResolutionError as exc:
        logger.warning("Falling back to relevance order for %s: %s", column.value, exc)
        return None


def sort_page(records: Sequence[ComponentRecord], key: SortKey | None, ascending: bool = True) -> list[ComponentRecord]:
    """Return the page ordered by ``key``; ties keep their incoming (relevance) order.

    ``sorted`` is stable in both directions, including ``reverse=True``.
    """
    if key is None:
        return list(records)
    return sorted(records, key=key, reverse=not ascending)
