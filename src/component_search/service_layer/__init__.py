"""Service layer - query execution, access control and result ordering."""

from .permissions import CallablePermissionChecker, PermissionChecker, PermissionFilter
from .query_executor import QueryExecutor
from .search_service import ComponentSearchService
from .sorting import resolve_sort_key, sort_page


__all__ = [
    "CallablePermissionChecker",
    "ComponentSearchService",
    "PermissionChecker",
    "PermissionFilter",
    "QueryExecutor",
    "resolve_sort_key",
    "sort_page",
]
