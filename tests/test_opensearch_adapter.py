"""OpenSearch adapter tests against a mocked client."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from opensearchpy.exceptions import ConnectionError, NotFoundError

from archive.search.adapter import SearchAdapterError
from archive.search.opensearch import INDEX_SETTINGS, OpenSearchAdapter
from archive.search.schemas import IndexedDocument


def _doc(subject_id: str) -> IndexedDocument:
    when = datetime(2025, 1, 1, tzinfo=UTC)
    return IndexedDocument(
        subject_id=subject_id,
        description="a clip",
        tags=["x"],
        created_at=when,
        added_at=when,
    )


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def search_adapter(client: MagicMock) -> OpenSearchAdapter:
    return OpenSearchAdapter(client, "archive_test", bulk_batch_size=2)


def test_creates_missing_index_with_ngram_analysis(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.indices.exists.return_value = False

    search_adapter.ensure_index_exists()

    client.indices.create.assert_called_once_with(
        index="archive_test", body=INDEX_SETTINGS
    )
    ngram = INDEX_SETTINGS["settings"]["analysis"]["filter"]["ngram_filter"]
    assert (ngram["min_gram"], ngram["max_gram"]) == (3, 4)


def test_existing_index_left_alone(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.indices.exists.return_value = True

    search_adapter.ensure_index_exists()

    client.indices.create.assert_not_called()


def test_index_init_failure_is_logged_not_raised(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.indices.exists.side_effect = ConnectionError("N/A", "refused", None)

    search_adapter.ensure_index_exists()


def test_index_document_uses_subject_id(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    search_adapter.index_document(_doc("v1"))

    kwargs = client.index.call_args.kwargs
    assert kwargs["index"] == "archive_test"
    assert kwargs["id"] == "v1"
    assert kwargs["refresh"] is False
    assert kwargs["body"]["description"] == "a clip"
    assert kwargs["body"]["added_at"].startswith("2025-01-01T00:00:00")


def test_index_failure_raises_adapter_error(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.index.side_effect = ConnectionError("N/A", "refused", None)

    with pytest.raises(SearchAdapterError):
        search_adapter.index_document(_doc("v1"))


def test_delete_of_missing_document_succeeds(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.delete.side_effect = NotFoundError(404, "not_found", {})

    search_adapter.delete_document("ghost")


def test_delete_failure_raises_adapter_error(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.delete.side_effect = ConnectionError("N/A", "timeout", None)

    with pytest.raises(SearchAdapterError):
        search_adapter.delete_document("v1")


@pytest.mark.parametrize("total", [{"value": 42, "relation": "eq"}, 42])
def test_query_parses_hits(
    client: MagicMock, search_adapter: OpenSearchAdapter, total: object
) -> None:
    client.search.return_value = {
        "hits": {"total": total, "hits": [{"_id": "b"}, {"_id": "a"}]}
    }

    hits = search_adapter.query({"query": {"match_all": {}}})

    assert hits.ids == ["b", "a"]
    assert hits.total == 42


def test_list_all_indexed_ids_scans_without_source(
    client: MagicMock,
    search_adapter: OpenSearchAdapter,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls = {}

    def fake_scan(scan_client, **kwargs):
        calls.update(kwargs)
        return iter([{"_id": "a"}, {"_id": "b"}])

    monkeypatch.setattr("archive.search.opensearch.helpers.scan", fake_scan)

    assert search_adapter.list_all_indexed_ids() == ["a", "b"]
    assert calls["query"]["_source"] is False


def test_list_all_indexed_ids_propagates_failure(
    search_adapter: OpenSearchAdapter, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_scan(scan_client, **kwargs):
        raise NotFoundError(404, "index_not_found_exception", {})

    monkeypatch.setattr("archive.search.opensearch.helpers.scan", broken_scan)

    with pytest.raises(SearchAdapterError):
        search_adapter.list_all_indexed_ids()


def test_bulk_index_batches_and_refreshes_once(
    client: MagicMock,
    search_adapter: OpenSearchAdapter,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    batches: list[list[str]] = []

    def fake_bulk(bulk_client, actions, **kwargs):
        assert kwargs["raise_on_error"] is False
        batches.append([action["_id"] for action in actions])
        return len(actions), []

    monkeypatch.setattr("archive.search.opensearch.helpers.bulk", fake_bulk)
    progress: list[int] = []

    processed = search_adapter.bulk_index(
        (_doc(f"v{i}") for i in range(5)), progress.append
    )

    assert processed == 5
    assert batches == [["v0", "v1"], ["v2", "v3"], ["v4"]]
    assert progress == [2, 4, 5]
    client.indices.refresh.assert_called_once_with(index="archive_test")


def test_bulk_item_errors_do_not_abort(
    client: MagicMock,
    search_adapter: OpenSearchAdapter,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def partial_bulk(bulk_client, actions, **kwargs):
        return len(actions) - 1, [{"index": {"_id": "v0", "status": 400}}]

    monkeypatch.setattr("archive.search.opensearch.helpers.bulk", partial_bulk)

    assert search_adapter.bulk_index([_doc("v0"), _doc("v1")], lambda n: None) == 2
    client.indices.refresh.assert_called_once()


def test_ping_reports_unreachable_cluster(
    client: MagicMock, search_adapter: OpenSearchAdapter
) -> None:
    client.ping.side_effect = ConnectionError("N/A", "refused", None)
    assert search_adapter.ping() is False

    client.ping.side_effect = None
    client.ping.return_value = True
    assert search_adapter.ping() is True
