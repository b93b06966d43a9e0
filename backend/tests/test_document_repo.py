import pytest

from backoffice.db import SessionLocal, init_db
from backoffice.repositories.document_repo import DocumentNotFound, DocumentRepository, watch
from backoffice.services.change_feed import change_feed


def setup_module(module):
    init_db(reset=True)


def test_create_get_update_delete():
    db = SessionLocal()
    try:
        repo = DocumentRepository(db)
        doc_id = repo.create("menu", {"name": "Bagel", "stock": 2, "id": "ignored"})
        db.commit()
        assert repo.get("menu", doc_id) == {"id": doc_id, "name": "Bagel", "stock": 2}

        repo.update("menu", doc_id, {"stock": 3})
        db.commit()
        assert repo.get("menu", doc_id)["stock"] == 3
        assert repo.get("menu", doc_id)["name"] == "Bagel"

        repo.set("menu", doc_id, {"name": "Bagel v2"})
        db.commit()
        assert repo.get("menu", doc_id) == {"id": doc_id, "name": "Bagel v2"}

        repo.delete("menu", doc_id)
        db.commit()
        assert repo.get("menu", doc_id) is None
    finally:
        db.close()


def test_update_and_delete_of_missing_document_raise():
    db = SessionLocal()
    try:
        repo = DocumentRepository(db)
        with pytest.raises(DocumentNotFound):
            repo.update("menu", "nope", {"stock": 1})
        with pytest.raises(DocumentNotFound):
            repo.delete("menu", "nope")
    finally:
        db.close()


def test_returned_documents_are_copies():
    db = SessionLocal()
    try:
        repo = DocumentRepository(db)
        repo.set("carts", "copy-check", {"items": [{"menuItemId": "x"}]})
        db.commit()
        doc = repo.get("carts", "copy-check")
        doc["items"].clear()
        assert repo.get("carts", "copy-check")["items"] == [{"menuItemId": "x"}]
    finally:
        db.close()


def test_batch_is_all_or_nothing():
    db = SessionLocal()
    try:
        repo = DocumentRepository(db)
        repo.set("carts", "b1", {"items": [1]})
        repo.set("carts", "b2", {"items": [2]})
        db.commit()

        batch = repo.batch()
        batch.update("carts", "b1", {"items": []})
        batch.update("carts", "missing-cart", {"items": []})
        batch.update("carts", "b2", {"items": []})
        assert len(batch) == 3
        with pytest.raises(DocumentNotFound):
            batch.commit()

        assert repo.get("carts", "b1")["items"] == [1]
        assert repo.get("carts", "b2")["items"] == [2]

        ok = repo.batch().update("carts", "b1", {"items": []}).update("carts", "b2", {"items": []})
        assert ok.commit() == 2
        assert repo.get("carts", "b1")["items"] == []
        assert repo.get("carts", "b2")["items"] == []
    finally:
        db.close()


def test_watch_yields_initial_and_post_commit_snapshots():
    with watch("users") as stream:
        assert stream.next_snapshot(timeout=1) == []
        # nothing changed yet
        assert stream.next_snapshot(timeout=0.05) is None

        db = SessionLocal()
        try:
            repo = DocumentRepository(db)
            repo.set("users", "u1", {"name": "Ann", "role": "cashier"})
            repo.set("users", "u2", {"name": "Ben", "role": "user"})
            # uncommitted work is not announced
            assert stream.next_snapshot(timeout=0.05) is None
            db.commit()
        finally:
            db.close()

        # two writes in one commit arrive as a single full snapshot
        snapshot = stream.next_snapshot(timeout=1)
        assert sorted(u["id"] for u in snapshot) == ["u1", "u2"]
        assert stream.next_snapshot(timeout=0.05) is None


def test_rolled_back_writes_are_not_announced():
    with watch("menu") as stream:
        stream.next_snapshot(timeout=1)
        db = SessionLocal()
        try:
            DocumentRepository(db).create("menu", {"name": "Ghost"})
            db.rollback()
        finally:
            db.close()
        assert stream.next_snapshot(timeout=0.05) is None


def test_closed_stream_stops_iteration_and_unsubscribes():
    stream = watch("carts")
    assert change_feed.subscriber_count("carts") >= 1
    first = next(stream)
    assert isinstance(first, list)
    stream.close()
    assert stream.closed
    with pytest.raises(StopIteration):
        next(stream)
    assert stream not in change_feed._subscribers["carts"]
