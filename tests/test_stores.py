import json

import pytest

from conftest import make_chunk, make_document

from docgate.errors import InvalidStatusError, NotFoundError
from docgate.storage.paging import MAX_PAGE_SIZE, clamp_page, paginate
from docgate.storage.reviews import ReviewStore


class TestReviewStore:
    def test_add_and_get(self, review_store):
        record = review_store.add(make_document())

        assert record.status == "pending"
        assert review_store.get(record.id) == record
        assert review_store.get("missing") is None

    def test_returned_records_are_copies(self, review_store):
        record = review_store.add(make_document())
        record.title = "changed"

        assert review_store.get(record.id).title == "Traffic rules"

    def test_transition_only_from_pending(self, review_store):
        record = review_store.add(make_document())

        approved = review_store.transition(record.id, "approved")

        assert approved.status == "approved"
        assert approved.updated_at >= record.updated_at
        with pytest.raises(InvalidStatusError):
            review_store.transition(record.id, "rejected")
        with pytest.raises(NotFoundError):
            review_store.transition("missing", "approved")

    def test_query_filters_and_pages(self, review_store):
        for i in range(5):
            review_store.add(make_document(url=f"https://site.test/{i}"))
        review_store.add(make_document(source_id="faq"))
        first = review_store.ids(source_id="docs")[0]
        review_store.transition(first, "rejected")

        pending_docs = review_store.query(status="pending", source_id="docs", page=1, page_size=3)

        assert pending_docs.total == 4
        assert len(pending_docs.items) == 3
        assert pending_docs.pages == 2
        assert review_store.query(status="pending", source_id="docs", page=2, page_size=3).items
        assert review_store.count("pending") == 5
        assert review_store.count() == 6

    async def test_snapshot_round_trip(self, tmp_path):
        path = tmp_path / "reviews.json"
        store = ReviewStore(path)
        kept = store.add(make_document())
        store.add(make_document(url="https://site.test/other"))
        store.transition(kept.id, "approved")
        await store.flush()

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert len(saved["reviews"]) == 2

        restored = ReviewStore(path)
        assert restored.load() == 2
        assert restored.get(kept.id).status == "approved"
        assert restored.count("pending") == 1

    def test_snapshot_written_without_event_loop(self, tmp_path):
        path = tmp_path / "nested" / "reviews.json"
        store = ReviewStore(path)

        store.add(make_document())

        assert path.exists()
        assert not path.with_suffix(".json.tmp").exists()

    def test_load_ignores_missing_or_corrupt_snapshot(self, tmp_path):
        assert ReviewStore(tmp_path / "absent.json").load() == 0

        corrupt = tmp_path / "corrupt.json"
        corrupt.write_text("{not json", encoding="utf-8")
        assert ReviewStore(corrupt).load() == 0


class TestChunkStore:
    def test_same_content_is_stored_once(self, chunk_store):
        first, created = chunk_store.add(make_chunk(0), title="T", version="v1")
        again, created_again = chunk_store.add(make_chunk(0), title="T", version="v2")

        assert created and not created_again
        assert again.id == first.id
        assert len(chunk_store) == 1
        assert chunk_store.find_by_hash(first.content_hash).id == first.id

    def test_uploaded_is_terminal(self, chunk_store):
        record, _ = chunk_store.add(make_chunk(0), title="T", version="v1")

        chunk_store.mark_uploaded(record.id)

        assert chunk_store.mark_uploaded(record.id).status == "uploaded"
        with pytest.raises(InvalidStatusError):
            chunk_store.mark_failed(record.id, "late failure")
        assert chunk_store.find_uploaded(record.content_hash).id == record.id

    def test_failed_can_be_retried(self, chunk_store):
        record, _ = chunk_store.add(make_chunk(0), title="T", version="v1")

        failed = chunk_store.mark_failed(record.id, "timeout")
        assert failed.error_message == "timeout"
        assert chunk_store.find_uploaded(record.content_hash) is None

        uploaded = chunk_store.mark_uploaded(record.id)
        assert uploaded.status == "uploaded"
        assert uploaded.error_message is None

    def test_unknown_chunk(self, chunk_store):
        with pytest.raises(NotFoundError):
            chunk_store.mark_uploaded("missing")

    def test_uploadable_and_query(self, chunk_store):
        ids = [chunk_store.add(make_chunk(i), title="T", version="v1")[0].id for i in range(3)]
        chunk_store.add(make_chunk(9, source_id="faq"), title="T", version="v1")
        chunk_store.mark_uploaded(ids[0])
        chunk_store.mark_failed(ids[1], "boom")

        assert [r.id for r in chunk_store.uploadable("docs")] == ids[1:]
        assert chunk_store.query(status="failed").total == 1
        assert chunk_store.query(source_id="faq").total == 1
        assert chunk_store.count() == 4


def test_page_size_is_clamped():
    assert clamp_page(0, 0) == (1, 1)
    assert clamp_page(3, 1000) == (3, MAX_PAGE_SIZE)

    page = paginate(list(range(450)), page=1, page_size=500)

    assert page.page_size == 200
    assert len(page.items) == 200
    assert page.total == 450
    assert page.pages == 3


def test_clear_empties_both_stores(review_store, chunk_store):
    review_store.add(make_document())
    record, _ = chunk_store.add(make_chunk(0), title="T", version="v1")

    review_store.clear()
    chunk_store.clear()

    assert review_store.count() == 0
    assert chunk_store.find_by_hash(record.content_hash) is None
    assert chunk_store.add(make_chunk(0), title="T", version="v1")[1]
