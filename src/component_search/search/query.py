"""Combine free text with field restrictions into one engine query.

Restrictions are OR within a field and AND across fields. Only fields the
schema declares may be restricted; anything else fails before the engine is
contacted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import re

from component_search.domain.exceptions import InvalidRestrictionError
from component_search.search.schema import FieldType, IndexSchema, date_key


MATCH_ALL = "*:*"
MATCH_NONE = "*:* AND NOT *:*"

_RANGE_RE = re.compile(r"^[\[{]\s*(\S+)\s+TO\s+(\S+)\s*[\]}]$")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")

Restrictions = Mapping[str, Iterable[str] | str]


def quote_term(value: str) -> str:
    """Quote a literal so Lucene matches it as one phrase."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def numeric_term(field_name: str, value: str) -> str:
    """Normalize a numeric restriction value: a number, a range, or an ISO date."""
    value = value.strip()
    if _RANGE_RE.match(value) or _NUMBER_RE.match(value):
        return value
    key = date_key(value)
    if key is None:
        raise InvalidRestrictionError(field_name, [], reason=f"value {value!r} is not numeric")
    return str(key)


@dataclass(frozen=True)
class ComponentQuery:
    """Free text plus validated restrictions, ready for an engine.

    Values of ``numeric_fields`` are already normalized numbers or ranges.
    """

    text: str
    restrictions: tuple[tuple[str, tuple[str, ...]], ...] = ()
    numeric_fields: frozenset[str] = frozenset()

    @property
    def is_match_all(self) -> bool:
        return not self.text and not self.restrictions

    @property
    def matches_nothing(self) -> bool:
        """A restricted field left with no usable value can match no document."""
        return any(not values for _, values in self.restrictions)

    def restriction_map(self) -> dict[str, tuple[str, ...]]:
        return dict(self.restrictions)

    def to_lucene(self) -> str:
        """Render the Lucene query string sent to Nouveau."""
        if self.matches_nothing:
            return MATCH_NONE
        if self.is_match_all:
            return MATCH_ALL

        clauses: list[str] = []
        if self.text:
            clauses.append(f"({self.text})")
        for field_name, values in self.restrictions:
            if field_name in self.numeric_fields:
                terms = list(values)
            else:
                terms = [quote_term(v) for v in values]
            clauses.append(f"{field_name}:({' OR '.join(terms)})")
        return " AND ".join(clauses)


def normalize_restrictions(
    restrictions: Restrictions | None,
    schema: IndexSchema,
) -> tuple[tuple[str, tuple[str, ...]], ...]:
    """Validate restriction fields and return them in a deterministic shape.

    A bare string is treated as a single value. Fields with no values add no
    constraint and are dropped. Blank values are never indexed, so they are
    removed; a field that held only blank values keeps an empty value tuple
    and the query matches nothing.

    Raises:
        InvalidRestrictionError: a field is not part of the schema
    """
    if not restrictions:
        return ()

    normalized: list[tuple[str, tuple[str, ...]]] = []
    for field_name in sorted(restrictions):
        if field_name not in schema:
            raise InvalidRestrictionError(field_name, schema.field_names)
        raw = restrictions[field_name]
        values = (raw,) if isinstance(raw, str) else tuple(raw or ())
        if not values:
            continue
        normalized.append((field_name, tuple(sorted({v for v in values if v and v.strip()}))))
    return tuple(normalized)


def build_query(text: str | None, restrictions: Restrictions | None, schema: IndexSchema) -> ComponentQuery:
    """Build the engine query for ``text`` narrowed by ``restrictions``.

    Empty or whitespace text means match-all within the restrictions.
    """
    normalized = normalize_restrictions(restrictions, schema)
    numeric = frozenset(name for name, _ in normalized if schema[name].kind is FieldType.DOUBLE)
    if numeric:
        normalized = tuple(
            (name, tuple(numeric_term(name, v) for v in values) if name in numeric else values)
            for name, values in normalized
        )
    return ComponentQuery(text=(text or "").strip(), restrictions=normalized, numeric_fields=numeric)
