"""Query construction and search hydration tests."""

import pytest

from archive.content.repositories import RecordRepository
from archive.search.adapter import SearchAdapterError
from archive.search.query import QueryEngine, build_query, resolve_fields
from archive.search.schemas import QueryHits
from fakes import FakeSearchAdapter, add_record


def _should(body: dict) -> list[dict]:
    return body["query"]["bool"]["should"]


def _targets(body: dict) -> set[str]:
    names = set()
    for clause in _should(body):
        for params in clause.values():
            names.update(params)
    return names


class TestResolveFields:
    def test_none_means_all(self) -> None:
        assert resolve_fields(None) == ["description", "creator", "tags"]

    def test_empty_selection_means_all(self) -> None:
        assert resolve_fields([]) == ["description", "creator", "tags"]

    def test_all_keyword(self) -> None:
        assert resolve_fields(["tags", "all"]) == ["description", "creator", "tags"]

    def test_subset_in_canonical_order(self) -> None:
        assert resolve_fields(["tags", "Description"]) == ["description", "tags"]

    def test_unknown_fields_ignored(self) -> None:
        assert resolve_fields(["tags", "bogus"]) == ["tags"]
        assert resolve_fields(["bogus"]) == ["description", "creator", "tags"]


class TestBuildQuery:
    def test_default_fields_and_boosts(self) -> None:
        body = build_query("cats", page=1, page_size=20)

        assert body["query"]["bool"]["minimum_should_match"] == 1
        assert _targets(body) == {
            "description",
            "creator_name",
            "creator_username",
            "tags",
        }
        description = _should(body)[0]["match"]["description"]
        assert description == {"query": "cats", "fuzziness": "AUTO", "boost": 2.0}
        creator = _should(body)[1]["match"]["creator_name"]
        assert creator["boost"] == 1.5
        assert creator["fuzziness"] == "AUTO"
        tags = _should(body)[3]["wildcard"]["tags"]
        assert tags == {"value": "*cats*", "case_insensitive": True, "boost": 1.0}

    def test_sorted_by_recency(self) -> None:
        body = build_query("cats", page=1, page_size=20)
        assert body["sort"] == [{"added_at": {"order": "desc"}}]

    @pytest.mark.parametrize(
        ("page", "page_size", "offset"),
        [(1, 20, 0), (2, 20, 20), (3, 5, 10)],
    )
    def test_pagination_offset(self, page: int, page_size: int, offset: int) -> None:
        body = build_query("cats", page=page, page_size=page_size)
        assert body["from"] == offset
        assert body["size"] == page_size

    def test_tags_only(self) -> None:
        body = build_query("cats", page=1, page_size=20, fields=["tags"])
        assert _targets(body) == {"tags"}

    def test_creator_searches_name_and_handle(self) -> None:
        body = build_query("Bob", page=1, page_size=20, fields=["creator"])
        assert _targets(body) == {"creator_name", "creator_username"}
        handle = _should(body)[1]["wildcard"]["creator_username"]
        assert handle["value"] == "*bob*"
        assert handle["case_insensitive"] is True

    def test_wildcard_metacharacters_escaped(self) -> None:
        body = build_query("a*b?", page=1, page_size=20, fields=["tags"])
        assert _should(body)[0]["wildcard"]["tags"]["value"] == "*a\\*b\\?*"


@pytest.mark.asyncio
async def test_results_follow_engine_order_and_drop_missing(
    records: RecordRepository, adapter: FakeSearchAdapter
) -> None:
    """Hydrated records keep engine order; unknown ids vanish from the page."""
    for subject_id in ["V1", "V3"]:
        add_record(records, subject_id, description=f"clip {subject_id}")
    adapter.query_hits = QueryHits(ids=["V3", "V1", "V2"], total=3)

    page = await QueryEngine(adapter, records).search("clip")

    assert [r.subject_id for r in page.records] == ["V3", "V1"]
    assert page.total == 3
    assert page.page == 1
    assert page.page_size == 20


@pytest.mark.asyncio
async def test_second_page_requests_offset(
    records: RecordRepository, adapter: FakeSearchAdapter
) -> None:
    await QueryEngine(adapter, records).search("x", page=2, page_size=20)

    assert adapter.query_bodies[0]["from"] == 20
    assert adapter.query_bodies[0]["size"] == 20


@pytest.mark.asyncio
async def test_engine_failure_returns_empty_page(
    records: RecordRepository, adapter: FakeSearchAdapter
) -> None:
    adapter.fail_with = SearchAdapterError("index_not_found_exception")

    page = await QueryEngine(adapter, records).search("cats", page=3, page_size=10)

    assert page.records == []
    assert page.total == 0
    assert page.page == 3
    assert page.page_size == 10


@pytest.mark.asyncio
async def test_blank_query_skips_engine(
    records: RecordRepository, adapter: FakeSearchAdapter
) -> None:
    page = await QueryEngine(adapter, records).search("   ")

    assert page.records == []
    assert page.total == 0
    assert adapter.query_bodies == []
