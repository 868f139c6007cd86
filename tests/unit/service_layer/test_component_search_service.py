"""Unit tests for the component search service facade."""

import pytest

from component_search.domain.exceptions import EngineUnavailableError, InvalidRestrictionError
from component_search.domain.model import RequestedAction
from component_search.domain.search import PaginationRequest, SortColumn
from component_search.observability.metrics import SEARCH_REQUESTS
from component_search.service_layer.search_service import ComponentSearchService


ALL_IDS = [f"comp-{i:02d}" for i in range(25)]


def _ids(records):
    return [r.id for r in records]


def _page(service, principal, offset, sort_column=SortColumn.NONE, ascending=True, size=10):
    pagination = PaginationRequest(page_offset=offset, page_size=size, sort_column=sort_column, ascending=ascending)
    return service.search_accessible("library", None, principal, pagination)


@pytest.fixture
def guarded_service(engine, schema, odd_readable_checker):
    return ComponentSearchService(engine, schema, odd_readable_checker)


class TestSearchAccessible:
    @pytest.mark.parametrize("sort_column", list(SortColumn))
    @pytest.mark.parametrize("ascending", [True, False])
    def test_pages_partition_the_result_set(self, service, principal, sort_column, ascending):
        pages = [_page(service, principal, offset, sort_column, ascending) for offset in (0, 10, 20)]

        seen = [doc_id for page in pages for doc_id in _ids(page.components)]
        assert sorted(seen) == ALL_IDS
        assert len(seen) == len(set(seen))
        assert [len(page.components) for page in pages] == [10, 10, 5]
        assert all(page.pagination.total_row_count == 25 for page in pages)

    def test_denied_records_never_appear(self, guarded_service, principal):
        for offset in (0, 10, 20):
            page = _page(guarded_service, principal, offset)
            assert all(int(doc_id[-2:]) % 2 == 1 for doc_id in _ids(page.components))

    def test_short_page_is_not_topped_up(self, guarded_service, principal):
        page = _page(guarded_service, principal, 0)

        assert _ids(page.components) == ["comp-01", "comp-03", "comp-05", "comp-07", "comp-09"]
        assert page.pagination.total_row_count == 25
        assert page.pagination.page_size == 10
        assert page.pagination.next_page_token == "10"

    def test_resort_only_reorders_the_engine_page(self, service, principal):
        page = _page(service, principal, 0, SortColumn.BY_NAME, ascending=False)

        assert _ids(page.components) == [f"comp-{i:02d}" for i in range(9, -1, -1)]
        assert page.pagination.sort_column is SortColumn.BY_NAME
        assert page.pagination.ascending is False

    def test_created_on_sort(self, engine, service, principal):
        engine.documents["comp-02"]["createdOn"] = "2025-01-01"

        page = _page(service, principal, 0, SortColumn.BY_CREATEDON)

        assert _ids(page.components)[-1] == "comp-02"
        assert _ids(page.components)[:2] == ["comp-00", "comp-01"]

    def test_equal_sort_values_keep_relevance_order(self, service, principal):
        page = _page(service, principal, 10, SortColumn.BY_TYPE, ascending=False)

        assert _ids(page.components) == ALL_IDS[10:20]

    def test_unknown_sort_identifier_falls_back_to_relevance(self, service, principal):
        pagination = PaginationRequest(page_size=5, sort_column="BY_POPULARITY")

        page = service.search_accessible("library", None, principal, pagination)

        assert page.pagination.sort_column is SortColumn.NONE
        assert _ids(page.components) == ALL_IDS[:5]

    def test_restrictions_apply_before_paging(self, engine, service, principal):
        engine.documents["comp-04"]["languages"] = ["Go"]
        engine.documents["comp-17"]["languages"] = ["Go", "Java"]

        page = service.search_accessible("", {"languages": {"Go"}}, principal, PaginationRequest())

        assert _ids(page.components) == ["comp-04", "comp-17"]
        assert page.pagination.total_row_count == 2

    def test_invalid_restriction_is_rejected(self, service, principal):
        with pytest.raises(InvalidRestrictionError):
            service.search_accessible("x", {"description": {"y"}}, principal, PaginationRequest())


class TestSearchWithAccessibility:
    def test_every_match_is_returned_and_annotated(self, guarded_service, principal):
        records = guarded_service.search_with_accessibility("library", None, principal)

        assert _ids(records) == ALL_IDS
        assert [r.is_action_permitted(RequestedAction.READ) for r in records[:4]] == [False, True, False, True]
        assert not any(r.is_action_permitted(RequestedAction.WRITE) for r in records)

    def test_count_matches_unfiltered_search(self, guarded_service, principal):
        annotated = guarded_service.search_with_accessibility("", {"componentType": {"OSS"}}, principal)

        assert len(annotated) == len(guarded_service.search("", {"componentType": {"OSS"}})) == 25

    def test_malformed_permission_answer_does_not_fail_the_search(self, engine, schema, principal):
        class LowercaseActionChecker:
            def is_action_allowed(self, record, principal, action):
                return True

            def permissions_for(self, record, principal):
                return {"read": True}

        service = ComponentSearchService(engine, schema, LowercaseActionChecker())

        records = service.search_with_accessibility("library", None, principal)

        assert _ids(records) == ALL_IDS
        assert not any(r.is_action_permitted(RequestedAction.READ) for r in records)


class TestSearchAndRegistration:
    def test_search_returns_everything_in_relevance_order(self, service):
        assert _ids(service.search("library")) == ALL_IDS

    def test_register_schema_is_idempotent(self, service, engine):
        assert service.register_schema() is False
        assert engine.design_documents["_design/lucene"]["_rev"] == "1-memory"

    def test_outcomes_are_counted(self, service, engine, principal):
        ok = SEARCH_REQUESTS.labels(operation="search", outcome="ok")
        failed = SEARCH_REQUESTS.labels(operation="search", outcome="EngineUnavailableError")
        ok_before, failed_before = ok._value.get(), failed._value.get()

        service.search("library")
        engine.available = False
        with pytest.raises(EngineUnavailableError):
            service.search("library")

        assert ok._value.get() - ok_before == 1
        assert failed._value.get() - failed_before == 1
