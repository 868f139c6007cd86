"""In-process search engine for tests and local development.

Evaluates the schema's indexing rules in Python and approximates Lucene
semantics closely enough for the search core:
- keyword-analyzed fields match exactly and case-sensitively
- standard-analyzed fields match lowercased word sequences
- free-text terms are OR-ed; relevance is the number of matching terms
- bookmarks are stringified offsets into the ranked hit list
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import copy
import logging
import re
from typing import Any

from component_search.adapters.search_engine import AbstractSearchEngine, EngineHit, EngineResult
from component_search.domain.exceptions import (
    EngineUnavailableError,
    InvalidQueryError,
    SchemaRegistrationError,
    SearchEngineError,
)
from component_search.domain.model import ComponentRecord
from component_search.search.query import MATCH_ALL, ComponentQuery
from component_search.search.schema import Analyzer, FieldType, IndexSchema


logger = logging.getLogger(__name__)

_TERM_RE = re.compile(r'[+-]?(?:[\w.]+:)?"[^"]*"|\S+')
_WORD_RE = re.compile(r"\w+")
_RANGE_RE = re.compile(r"^([\[{])\s*(\S+)\s+TO\s+(\S+)\s*([\]}])$")
_OPERATORS = frozenset({"AND", "OR", "NOT", "&&", "||", "!"})


def _words(value: str) -> list[str]:
    return _WORD_RE.findall(value.lower())


def _contains_phrase(haystack: list[str], needle: list[str]) -> bool:
    if not needle:
        return False
    width = len(needle)
    return any(haystack[i : i + width] == needle for i in range(len(haystack) - width + 1))


def _check_syntax(text: str) -> None:
    if text.count('"') % 2:
        raise InvalidQueryError("Cannot parse query: unbalanced quotes", 400)
    depth = 0
    for segment in re.split(r'"[^"]*"', text):
        for char in segment:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth < 0:
                    raise InvalidQueryError("Cannot parse query: unexpected ')'", 400)
    if depth:
        raise InvalidQueryError("Cannot parse query: unbalanced parentheses", 400)


class _IndexedDocument:
    """Index entries of one document grouped by field."""

    def __init__(self, doc_id: str, doc: dict[str, Any], schema: IndexSchema) -> None:
        self.doc_id = doc_id
        self.doc = doc
        self.values: dict[str, list[str | float]] = {}
        self.stored: dict[str, Any] = {}
        for entry in schema.index_document(doc):
            self.values.setdefault(entry.field, []).append(entry.value)
            if entry.stored:
                if entry.field in schema and schema[entry.field].multi_valued:
                    self.stored.setdefault(entry.field, []).append(entry.value)
                else:
                    self.stored[entry.field] = entry.value

    @property
    def is_indexed(self) -> bool:
        return bool(self.values)


class InMemorySearchEngine(AbstractSearchEngine):
    """Dict-backed engine holding raw documents in insertion order.

    Args:
        documents: Initial documents (raw dicts or ``ComponentRecord``)
    """

    def __init__(self, documents: Iterable[Mapping[str, Any] | ComponentRecord] = ()) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.design_documents: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, int, str | None]] = []
        self.available = True
        self.fail_design_writes = False
        self.add_documents(documents)

    def add_documents(self, documents: Iterable[Mapping[str, Any] | ComponentRecord]) -> None:
        for document in documents:
            if isinstance(document, ComponentRecord):
                raw = document.model_dump(by_alias=True, mode="json", exclude={"permissions"})
            else:
                raw = dict(document)
            doc_id = raw.get("_id") or f"doc-{len(self.documents) + 1}"
            raw["_id"] = doc_id
            self.documents[doc_id] = raw

    def ensure_design_document(self, design_doc: dict[str, Any]) -> bool:
        doc_id = design_doc["_id"]
        if self.fail_design_writes:
            raise SchemaRegistrationError(doc_id, "design document writes are disabled")

        existing = self.design_documents.get(doc_id)
        wanted = design_doc.get("nouveau", {})
        if existing is not None and all(existing["nouveau"].get(k) == v for k, v in wanted.items()):
            return False

        merged = copy.deepcopy(existing) if existing else {"_id": doc_id, "nouveau": {}}
        merged["nouveau"].update(copy.deepcopy(wanted))
        merged["_rev"] = f"{int(str(merged.get('_rev', '0-')).split('-')[0]) + 1}-memory"
        self.design_documents[doc_id] = merged
        return True

    def search(
        self,
        schema: IndexSchema,
        query: ComponentQuery,
        *,
        limit: int,
        bookmark: str | None = None,
    ) -> EngineResult:
        self.requests.append((query.to_lucene(), limit, bookmark))
        if not self.available:
            raise EngineUnavailableError("In-memory engine marked unavailable")
        design = self.design_documents.get(schema.design_doc_id)
        if design is None or schema.name not in design["nouveau"]:
            raise SearchEngineError(f"Index {schema.design_doc_id}/{schema.name} not found", 404)
        if query.text and query.text != MATCH_ALL:
            _check_syntax(query.text)

        ranked = self._rank(schema, query)
        try:
            start = int(bookmark) if bookmark else 0
        except ValueError as exc:
            raise InvalidQueryError(f"Invalid bookmark {bookmark!r}", 400) from exc
        window = ranked[start : start + limit]
        end = start + len(window)

        hits = [
            EngineHit(id=indexed.doc_id, doc=copy.deepcopy(indexed.doc), fields=dict(indexed.stored), order=(score,))
            for score, indexed in window
        ]
        return EngineResult(total_hits=len(ranked), hits=hits, bookmark=str(end) if end < len(ranked) else None)

    def _rank(self, schema: IndexSchema, query: ComponentQuery) -> list[tuple[float, _IndexedDocument]]:
        terms = self._parse_terms(query.text)
        restrictions = query.restriction_map()
        scored: list[tuple[float, int, _IndexedDocument]] = []
        for position, (doc_id, doc) in enumerate(self.documents.items()):
            indexed = _IndexedDocument(doc_id, doc, schema)
            if not indexed.is_indexed:
                continue
            if not all(self._matches_restriction(schema, indexed, f, vs) for f, vs in restrictions.items()):
                continue
            score = 1.0
            if terms is not None:
                matched = sum(1 for field_name, term in terms if self._matches_term(schema, indexed, field_name, term))
                score = float(matched)
                if score == 0:
                    continue
            scored.append((score, position, indexed))
        # Highest score first, insertion order among equals
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [(score, indexed) for score, _, indexed in scored]

    @staticmethod
    def _parse_terms(text: str) -> list[tuple[str | None, str]] | None:
        """Split free text into (field, term) pairs; None means match-all."""
        if not text or text == MATCH_ALL:
            return None
        terms: list[tuple[str | None, str]] = []
        for raw in _TERM_RE.findall(text):
            token = raw.strip("()").lstrip("+-")
            if not token or token in _OPERATORS:
                continue
            field_name: str | None = None
            if ":" in token and not token.startswith('"'):
                field_name, token = token.split(":", 1)
            terms.append((field_name, token.strip('"')))
        return terms

    def _matches_term(self, schema: IndexSchema, indexed: _IndexedDocument, field_name: str | None, term: str) -> bool:
        target = field_name or schema.catch_all_field
        values = indexed.values.get(target, [])
        if not term:
            return False
        return any(self._value_matches(schema, target, value, term) for value in values)

    def _matches_restriction(
        self, schema: IndexSchema, indexed: _IndexedDocument, field_name: str, allowed: tuple[str, ...]
    ) -> bool:
        values = indexed.values.get(field_name, [])
        return any(self._value_matches(schema, field_name, value, wanted) for value in values for wanted in allowed)

    @staticmethod
    def _value_matches(schema: IndexSchema, field_name: str, value: str | float, wanted: str) -> bool:
        if field_name in schema and schema[field_name].kind is FieldType.DOUBLE:
            range_match = _RANGE_RE.match(wanted)
            if range_match:
                open_, low, high, close = range_match.groups()
                above = low == "*" or (value >= float(low) if open_ == "[" else value > float(low))
                below = high == "*" or (value <= float(high) if close == "]" else value < float(high))
                return above and below
            try:
                return value == float(wanted)
            except ValueError:
                return False

        text_value = str(value)
        prefix = wanted.endswith("*") and len(wanted) > 1
        if schema.analyzer_for(field_name) is Analyzer.KEYWORD:
            return text_value.startswith(wanted[:-1]) if prefix else text_value == wanted

        words = _words(text_value)
        if prefix:
            stem = wanted[:-1].lower()
            return any(word.startswith(stem) for word in words)
        return _contains_phrase(words, _words(wanted))
