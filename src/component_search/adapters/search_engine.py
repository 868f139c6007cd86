"""Search engine abstraction.

The engine is an external collaborator: it stores the index design document,
tokenizes, ranks and pages. This module only fixes the contract the query
executor talks to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from component_search.search.query import ComponentQuery
    from component_search.search.schema import IndexSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineHit:
    """A single ranked hit as returned by the engine."""

    id: str
    doc: dict[str, Any] | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    order: tuple[Any, ...] = ()


@dataclass(frozen=True)
class EngineResult:
    """One window of ranked hits plus the engine's paging bookkeeping."""

    total_hits: int
    hits: list[EngineHit] = field(default_factory=list)
    bookmark: str | None = None


class AbstractSearchEngine(ABC):
    """Abstract full-text engine holding the component index.

    Implementations must be safe to share between concurrent callers.
    """

    @abstractmethod
    def ensure_design_document(self, design_doc: dict[str, Any]) -> bool:
        """Install ``design_doc`` unless an identical definition is already present.

        Returns:
            True when the engine was written to, False for a no-op

        Raises:
            SchemaRegistrationError: the definition could not be written
        """
        raise NotImplementedError

    @abstractmethod
    def search(
        self,
        schema: IndexSchema,
        query: ComponentQuery,
        *,
        limit: int,
        bookmark: str | None = None,
    ) -> EngineResult:
        """Return up to ``limit`` hits in relevance order, continuing after ``bookmark``.

        Raises:
            EngineUnavailableError: the engine could not be reached
            InvalidQueryError: the engine rejected the query syntax
            SearchEngineError: any other engine failure
        """
        raise NotImplementedError

    def close(self) -> None:
        """Optional hook releasing connections."""

        return
