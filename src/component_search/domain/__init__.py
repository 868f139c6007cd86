"""Domain layer - records, principals, pagination value objects and errors.

No infrastructure dependencies: nothing here talks to CouchDB or knows
how the index is built.
"""

from component_search.domain.exceptions import (
    ComponentSearchError,
    EngineUnavailableError,
    InvalidQueryError,
    InvalidRestrictionError,
    SchemaRegistrationError,
    SearchEngineError,
    SortResolutionError,
)
from component_search.domain.model import COMPONENT_TYPE, ComponentRecord, Principal, RequestedAction
from component_search.domain.search import ComponentPage, PaginationRequest, PaginationResponse, SortColumn


__all__ = [
    "COMPONENT_TYPE",
    "ComponentPage",
    "ComponentRecord",
    "ComponentSearchError",
    "EngineUnavailableError",
    "InvalidQueryError",
    "InvalidRestrictionError",
    "PaginationRequest",
    "PaginationResponse",
    "Principal",
    "RequestedAction",
    "SchemaRegistrationError",
    "SearchEngineError",
    "SortColumn",
    "SortResolutionError",
]
