"""Value objects for paged component search.

Requests and responses are immutable and built per call.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from component_search.domain.model import ComponentRecord


class SortColumn(str, Enum):
    """Columns a paged search can be re-sorted by.

    ``NONE`` keeps the engine's relevance order.
    """

    NONE = "NONE"
    BY_NAME = "BY_NAME"
    BY_CREATEDON = "BY_CREATEDON"
    BY_TYPE = "BY_TYPE"

    @classmethod
    def parse(cls, identifier: "SortColumn | str | None") -> "SortColumn":
        """Resolve an external identifier, falling back to ``NONE`` when unrecognized."""
        if isinstance(identifier, SortColumn):
            return identifier
        if not identifier:
            return cls.NONE
        try:
            return cls(str(identifier).strip().upper())
        except ValueError:
            return cls.NONE


class PaginationRequest(BaseModel):
    """Page window and ordering requested by the caller.

    ``page_token`` is an opaque engine bookmark; when present it takes
    precedence over ``page_offset``.
    """

    model_config = ConfigDict(frozen=True)

    page_offset: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, gt=0)
    page_token: str | None = None
    sort_column: SortColumn = SortColumn.NONE
    ascending: bool = True

    @field_validator("sort_column", mode="before")
    @classmethod
    def _parse_sort_column(cls, value: object) -> SortColumn:
        return SortColumn.parse(value)  # type: ignore[arg-type]


class PaginationResponse(BaseModel):
    """The engine's bookkeeping for a returned page."""

    model_config = ConfigDict(frozen=True)

    total_row_count: int = Field(ge=0)
    page_offset: int = Field(ge=0)
    page_size: int = Field(gt=0)
    sort_column: SortColumn = SortColumn.NONE
    ascending: bool = True
    next_page_token: str | None = None


class ComponentPage(BaseModel):
    """A page of components paired with its pagination envelope."""

    model_config = ConfigDict(frozen=True)

    pagination: PaginationResponse
    components: list[ComponentRecord] = Field(default_factory=list)
