"""
Index schema for component search.

Declares which component fields the search engine indexes, as what type, with
which analyzer, and whether the raw value is stored for retrieval. The same
declaration drives two renderings:

- ``index_document``: the indexing rules evaluated in Python (used by the
  in-memory engine and to reason about what a document contributes)
- ``to_index_function`` / ``to_design_document``: the JavaScript index function
  and Nouveau design document installed into CouchDB

Field kinds:
- TEXT: analyzed text; set-valued fields emit one entry per element
- DOUBLE: numeric field used for range queries and numeric ordering

The schema is built once at startup and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from component_search.domain.model import COMPONENT_TYPE


DESIGN_DOC_PREFIX = "_design/"
DEFAULT_DESIGN_DOC_ID = DESIGN_DOC_PREFIX + "lucene"
CATCH_ALL_FIELD = "default"


class FieldType(str, Enum):
    """Index value types understood by the Nouveau index function."""

    TEXT = "text"
    DOUBLE = "double"


class Analyzer(str, Enum):
    """Lucene analyzers referenced by the schema."""

    STANDARD = "standard"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class IndexFieldSpec:
    """
    A single indexed field.

    Args:
        name: Index field name (and the document key it is read from)
        kind: TEXT or DOUBLE
        stored: Keep the raw value so hits can return and post-process it
        multi_valued: The document value is a list; each element is its own entry
        analyzer: Analyzer override; None means the schema default
        catch_all: Also feed non-empty values into the catch-all free-text field
    """

    name: str
    kind: FieldType = FieldType.TEXT
    stored: bool = True
    multi_valued: bool = False
    analyzer: Analyzer | None = None
    catch_all: bool = False


@dataclass(frozen=True)
class IndexEntry:
    """One value the index function emits for a document."""

    field: str
    kind: FieldType
    value: str | float
    stored: bool


def date_key(value: object) -> int | None:
    """
    Normalize a stored date to the numeric ``YYYYMMDD`` key.

    Accepts ``YYYY-MM-DD`` and full ISO-8601 timestamps. Timestamps with an
    offset are keyed by their UTC date, like the index function's
    ``getUTC*`` calls. Returns None for missing or unparseable values so they
    are never indexed.

    Example:
        date_key("2024-03-07") == 20240307
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        parsed: date = moment.date()
    except ValueError:
        try:
            parsed = date.fromisoformat(value[:10])
        except ValueError:
            return None
    return parsed.year * 10000 + parsed.month * 100 + parsed.day


def _non_empty_strings(value: object) -> list[str]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    return sorted(item for item in value if isinstance(item, str) and item)


@dataclass(frozen=True)
class IndexSchema:
    """
    Named, immutable index definition for one document kind.

    Example:
        schema = IndexSchema(
            name="components",
            fields=(
                IndexFieldSpec("name", catch_all=True),
                IndexFieldSpec("categories", multi_valued=True, analyzer=Analyzer.KEYWORD),
                IndexFieldSpec("createdOn", kind=FieldType.DOUBLE),
            ),
        )
    """

    name: str
    fields: tuple[IndexFieldSpec, ...]
    design_doc_id: str = DEFAULT_DESIGN_DOC_ID
    document_type: str = COMPONENT_TYPE
    default_analyzer: Analyzer = Analyzer.STANDARD
    catch_all_field: str = CATCH_ALL_FIELD
    _field_map: dict[str, IndexFieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate schema after initialization."""
        field_map = {f.name: f for f in self.fields}
        if len(field_map) != len(self.fields):
            msg = f"Duplicate field names in schema '{self.name}'"
            raise ValueError(msg)
        if self.catch_all_field in field_map:
            msg = f"Catch-all field '{self.catch_all_field}' collides with a declared field"
            raise ValueError(msg)
        if not self.design_doc_id.startswith(DESIGN_DOC_PREFIX):
            msg = f"Design document id must start with '{DESIGN_DOC_PREFIX}': {self.design_doc_id}"
            raise ValueError(msg)
        object.__setattr__(self, "_field_map", field_map)

    def __getitem__(self, name: str) -> IndexFieldSpec:
        """Get field by name."""
        return self._field_map[name]

    def __contains__(self, name: object) -> bool:
        return name in self._field_map

    def __iter__(self) -> Iterator[IndexFieldSpec]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def design_doc_name(self) -> str:
        """Design document name without the ``_design/`` prefix."""
        return self.design_doc_id.removeprefix(DESIGN_DOC_PREFIX)

    def is_stored(self, name: str) -> bool:
        spec = self._field_map.get(name)
        return spec is not None and spec.stored

    def analyzer_for(self, name: str) -> Analyzer:
        spec = self._field_map.get(name)
        if spec is None or spec.analyzer is None:
            return self.default_analyzer
        return spec.analyzer

    def index_document(self, doc: Mapping[str, Any]) -> list[IndexEntry]:
        """
        Apply the indexing rules to a raw document.

        Documents of another kind yield nothing. Empty strings, empty lists and
        unparseable dates are skipped, so they can never match a restriction.
        """
        if doc.get("type") != self.document_type:
            return []

        entries: list[IndexEntry] = []
        catch_all: list[str] = []
        for spec in self.fields:
            raw = doc.get(spec.name)
            if spec.kind is FieldType.DOUBLE:
                key = date_key(raw)
                if key is not None:
                    entries.append(IndexEntry(spec.name, spec.kind, float(key), spec.stored))
                continue

            values = _non_empty_strings(raw) if spec.multi_valued else ([raw] if isinstance(raw, str) and raw else [])
            for value in values:
                entries.append(IndexEntry(spec.name, spec.kind, value, spec.stored))
            if spec.catch_all:
                catch_all.extend(values)

        for value in catch_all:
            entries.append(IndexEntry(self.catch_all_field, FieldType.TEXT, value, False))
        return entries

    def to_index_function(self) -> str:
        """Render the JavaScript index function CouchDB evaluates per document."""
        lines = [
            "function(doc) {",
            "  function arrayToStringIndex(arr, prop, store) {",
            "    if (!arr || !arr.length) return;",
            "    for (var i = 0; i < arr.length; i++) {",
            "      if (typeof(arr[i]) == 'string' && arr[i].length > 0) {",
            "        index('text', prop, arr[i], {'store': store});",
            "      }",
            "    }",
            "  }",
            f"  if (!doc.type || doc.type != '{self.document_type}') return;",
        ]
        catch_all = self.catch_all_field
        for spec in self.fields:
            store = "true" if spec.stored else "false"
            ref = f"doc.{spec.name}"
            if spec.kind is FieldType.DOUBLE:
                lines += [
                    f"  if ({ref} && {ref}.length) {{",
                    f"    var dt = new Date({ref});",
                    "    if (!isNaN(dt.getTime())) {",
                    "      var key = dt.getUTCFullYear() * 10000 + (dt.getUTCMonth() + 1) * 100 + dt.getUTCDate();",
                    f"      index('double', '{spec.name}', key, {{'store': {store}}});",
                    "    }",
                    "  }",
                ]
            elif spec.multi_valued:
                lines.append(f"  arrayToStringIndex({ref}, '{spec.name}', {store});")
                if spec.catch_all:
                    lines.append(f"  arrayToStringIndex({ref}, '{catch_all}', false);")
            else:
                lines += [
                    f"  if ({ref} && typeof({ref}) == 'string' && {ref}.length > 0) {{",
                    f"    index('text', '{spec.name}', {ref}, {{'store': {store}}});",
                ]
                if spec.catch_all:
                    lines.append(f"    index('text', '{catch_all}', {ref}, {{'store': false}});")
                lines.append("  }")
        lines.append("}")
        return "\n".join(lines)

    def to_design_document(self) -> dict[str, Any]:
        """Render the Nouveau design document body (without ``_rev``)."""
        field_analyzers = {
            spec.name: spec.analyzer.value
            for spec in self.fields
            if spec.analyzer is not None and spec.analyzer is not self.default_analyzer
        }
        index: dict[str, Any] = {
            "default_analyzer": self.default_analyzer.value,
            "index": self.to_index_function(),
        }
        if field_analyzers:
            index["field_analyzers"] = field_analyzers
        return {"_id": self.design_doc_id, "nouveau": {self.name: index}}


def create_component_schema() -> IndexSchema:
    """
    Create the index schema for component records.

    Fields:
    - categories, languages, softwarePlatforms, operatingSystems, vendorNames,
      mainLicenseIds: one keyword-analyzed entry per set element
    - name: standard-analyzed text, also fed to the catch-all field
    - componentType, createdBy, businessUnit: keyword-analyzed text
    - createdOn: numeric YYYYMMDD key
    """
    keyword = Analyzer.KEYWORD
    return IndexSchema(
        name="components",
        design_doc_id=DEFAULT_DESIGN_DOC_ID,
        fields=(
            IndexFieldSpec("categories", multi_valued=True, analyzer=keyword, catch_all=True),
            IndexFieldSpec("languages", multi_valued=True, analyzer=keyword, catch_all=True),
            IndexFieldSpec("softwarePlatforms", multi_valued=True, analyzer=keyword),
            IndexFieldSpec("operatingSystems", multi_valued=True, analyzer=keyword),
            IndexFieldSpec("vendorNames", multi_valued=True, analyzer=keyword, catch_all=True),
            IndexFieldSpec("mainLicenseIds", multi_valued=True, analyzer=keyword),
            IndexFieldSpec("componentType", analyzer=keyword),
            IndexFieldSpec("name", catch_all=True),
            IndexFieldSpec("createdBy", analyzer=keyword),
            IndexFieldSpec("createdOn", kind=FieldType.DOUBLE),
            IndexFieldSpec("businessUnit", analyzer=keyword),
        ),
    )
