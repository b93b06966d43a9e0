import copy
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.db import SessionLocal
from backoffice.models.document import Document
from backoffice.services.change_feed import SnapshotStream, change_feed, mark_touched
from backoffice.utils.transactions import atomic

log = logging.getLogger(__name__)


class DocumentNotFound(Exception):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


def _to_dict(row: Document) -> dict:
    return {**copy.deepcopy(row.data or {}), "id": row.doc_id}


def _payload(data: dict) -> dict:
    # the id lives on the row, never inside the JSON body
    return {k: v for k, v in dict(data).items() if k != "id"}


class DocumentRepository:
    """
    Collection/document access over the ``documents`` table.

    Methods flush but never commit; the calling service owns the commit, and
    collections written in a transaction are announced to the change feed once
    it commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self, collection: str, doc_id: str) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.collection == collection, Document.doc_id == doc_id)
            .first()
        )

    def _require(self, collection: str, doc_id: str) -> Document:
        row = self._row(collection, doc_id)
        if not row:
            raise DocumentNotFound(collection, doc_id)
        return row

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        row = self._row(collection, doc_id)
        return _to_dict(row) if row else None

    def exists(self, collection: str, doc_id: str) -> bool:
        return self._row(collection, doc_id) is not None

    def list(self, collection: str) -> List[dict]:
        rows = (
            self.db.query(Document)
            .filter(Document.collection == collection)
            .order_by(Document.id)
            .all()
        )
        return [_to_dict(r) for r in rows]

    def create(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.db.add(Document(collection=collection, doc_id=doc_id, data=_payload(data)))
        self.db.flush()
        mark_touched(self.db, collection)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict):
        row = self._row(collection, doc_id)
        if row:
            row.data = _payload(data)
        else:
            self.db.add(Document(collection=collection, doc_id=doc_id, data=_payload(data)))
        self.db.flush()
        mark_touched(self.db, collection)

    def update(self, collection: str, doc_id: str, fields: dict):
        row = self._require(collection, doc_id)
        # reassign so the JSON column registers the change
        row.data = {**(row.data or {}), **_payload(fields)}
        self.db.flush()
        mark_touched(self.db, collection)

    def delete(self, collection: str, doc_id: str):
        row = self._require(collection, doc_id)
        self.db.delete(row)
        self.db.flush()
        mark_touched(self.db, collection)

    def batch(self) -> "WriteBatch":
        return WriteBatch(self)

    def watch(self, collection: str) -> SnapshotStream:
        return watch(collection)


class WriteBatch:
    """
    Writes staged in memory and applied together by ``commit``.

    Either every staged write lands or none does: an update against a missing
    document (or any other failure) rolls the whole batch back.
    """

    def __init__(self, repo: DocumentRepository):
        self.repo = repo
        self._writes: List[Tuple[str, str, str, Optional[dict]]] = []

    def __len__(self):
        return len(self._writes)

    def set(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self._writes.append(("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, fields: dict) -> "WriteBatch":
        self._writes.append(("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._writes.append(("delete", collection, doc_id, None))
        return self

    def _apply(self, op: str, collection: str, doc_id: str, payload: Optional[dict]):
        if op == "set":
            self.repo.set(collection, doc_id, payload)
        elif op == "update":
            self.repo.update(collection, doc_id, payload)
        elif op == "delete":
            self.repo.delete(collection, doc_id)
        else:
            raise ValueError(f"Unknown batch operation {op!r}")

    def commit(self) -> int:
        """Apply and commit all staged writes; returns how many were applied."""
        if not self._writes:
            return 0
        with atomic(self.repo.db):
            for op, collection, doc_id, payload in self._writes:
                self._apply(op, collection, doc_id, payload)
        count = len(self._writes)
        log.debug("batch committed %d write(s)", count)
        self._writes = []
        return count


def _snapshot_loader(collection: str):
    def load() -> List[dict]:
        db = SessionLocal()
        try:
            return DocumentRepository(db).list(collection)
        finally:
            db.close()

    return load


def watch(collection: str) -> SnapshotStream:
    """Subscribe to full snapshots of ``collection``; close the stream when done."""
    return change_feed.subscribe(collection, _snapshot_loader(collection))

