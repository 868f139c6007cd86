"""Exceptions raised by the component search core."""


class ComponentSearchError(Exception):
    """Base class for every error raised by component search."""


class SchemaRegistrationError(ComponentSearchError):
    """Raised when the index design document cannot be written to the engine.

    Fatal at startup: a process that sees this must not serve search traffic.
    """

    def __init__(self, design_doc_id: str, reason: str):
        self.design_doc_id = design_doc_id
        self.reason = reason
        super().__init__(f"Failed to register design document '{design_doc_id}': {reason}")


class SearchEngineError(ComponentSearchError):
    """Raised when the search engine rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EngineUnavailableError(SearchEngineError):
    """The engine could not be reached or failed server-side. Retryable by the caller."""


class InvalidQueryError(SearchEngineError):
    """The free-text query was rejected by the engine's query parser."""


class InvalidRestrictionError(ComponentSearchError, ValueError):
    """A sub-query restriction names a field the index does not define, or a value it cannot hold."""

    def __init__(self, field_name: str, known_fields: list[str], reason: str | None = None):
        self.field_name = field_name
        self.known_fields = known_fields
        if reason is None:
            reason = f"unknown index field (known: {', '.join(known_fields)})"
        self.reason = reason
        super().__init__(f"Invalid restriction on '{field_name}': {reason}")


class SortResolutionError(ComponentSearchError):
    """A sort column could not be mapped onto a record field."""
