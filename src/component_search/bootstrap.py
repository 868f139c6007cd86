"""Process startup: configure observability, register the index, build the service."""

from __future__ import annotations

import logging

from component_search.adapters.nouveau_engine import NouveauSearchEngine
from component_search.adapters.search_engine import AbstractSearchEngine
from component_search.config import Settings
from component_search.observability.logging import configure_logging
from component_search.observability.tracing import configure_trace_exporter
from component_search.search.schema import create_component_schema
from component_search.service_layer.permissions import PermissionChecker
from component_search.service_layer.search_service import ComponentSearchService


logger = logging.getLogger(__name__)


def create_search_service(
    permission_checker: PermissionChecker,
    settings: Settings | None = None,
    *,
    engine: AbstractSearchEngine | None = None,
    configure_observability: bool = True,
) -> ComponentSearchService:
    """Build a ready-to-serve search service.

    The index definition is registered before the service is returned; a
    ``SchemaRegistrationError`` propagates and the process must not serve.

    Args:
        permission_checker: External capability check for READ and annotations
        settings: Application settings (loaded from the environment when omitted)
        engine: Pre-built engine; a Nouveau engine is built from settings otherwise
        configure_observability: Install logging and trace export from settings
    """
    settings = settings or Settings()  # type: ignore[call-arg]
    if configure_observability:
        configure_logging(settings.log_level, settings.log_json)
        configure_trace_exporter(settings)

    schema = create_component_schema()
    engine = engine or NouveauSearchEngine.from_settings(settings)
    service = ComponentSearchService(engine, schema, permission_checker, chunk_size=settings.search_chunk_size)

    service.register_schema()
    logger.info("Component search ready on database %s", settings.couchdb_database)
    return service
