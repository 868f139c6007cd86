"""Shared test fixtures and configuration."""

import os

import pytest


# Test environment overriding every setting the service reads
TEST_ENV = {
    "COUCHDB_URL": "http://couchdb.test:5984",
    "COUCHDB_DATABASE": "sw360db",
    "COUCHDB_USERNAME": "admin",
    "COUCHDB_PASSWORD": "s3cret",
    "HTTP_TIMEOUT": "5",
    "SEARCH_CHUNK_SIZE": "200",
    "LOG_LEVEL": "info",
    "LOG_JSON": "true",
    "OTLP_ENABLED": "false",
}


for key, value in TEST_ENV.items():
    os.environ[key] = value

from component_search.adapters.memory_engine import InMemorySearchEngine
from component_search.domain.model import ComponentRecord, Principal, RequestedAction
from component_search.search.schema import create_component_schema
from component_search.service_layer.permissions import CallablePermissionChecker
from component_search.service_layer.search_service import ComponentSearchService


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset environment variables to test defaults before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


def make_component(index: int, **overrides) -> dict:
    """Raw CouchDB document for a searchable component."""
    doc = {
        "_id": f"comp-{index:02d}",
        "_rev": "1-abc",
        "type": "component",
        "name": f"Component {index:02d}",
        "componentType": "OSS",
        "categories": ["library"],
        "languages": ["Java"],
        "vendorNames": ["Acme"],
        "createdBy": "alice@example.com",
        "createdOn": f"2024-03-{(index % 28) + 1:02d}",
        "businessUnit": "BU1",
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def schema():
    return create_component_schema()


@pytest.fixture
def catalog() -> list[dict]:
    """25 library components, all matching the free-text term 'library'."""
    return [make_component(i) for i in range(25)]


@pytest.fixture
def engine(schema, catalog) -> InMemorySearchEngine:
    engine = InMemorySearchEngine(catalog)
    engine.ensure_design_document(schema.to_design_document())
    return engine


@pytest.fixture
def principal() -> Principal:
    return Principal(email="bob@example.com", department="BU1", user_group="USER")


@pytest.fixture
def allow_all_checker() -> CallablePermissionChecker:
    return CallablePermissionChecker(lambda record, principal, action: True)


@pytest.fixture
def odd_readable_checker() -> CallablePermissionChecker:
    """READ only on components with an odd numeric suffix; writes always denied."""

    def check(record: ComponentRecord, principal: Principal, action: RequestedAction) -> bool:
        if action is not RequestedAction.READ:
            return False
        return int(record.id.split("-")[1]) % 2 == 1

    return CallablePermissionChecker(check)


@pytest.fixture
def service(engine, schema, allow_all_checker) -> ComponentSearchService:
    return ComponentSearchService(engine, schema, allow_all_checker)
