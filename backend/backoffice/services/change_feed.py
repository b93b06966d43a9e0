import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy import event

from backoffice.db import SessionLocal

log = logging.getLogger(__name__)

# session.info key holding the collections written in the current transaction
TOUCHED_KEY = "touched_collections"

Snapshot = List[dict]


class SnapshotStream:
    """
    Iterator of full snapshots of one collection.

    The first value is the current state; every committed change afterwards
    marks the stream dirty and the next read loads a fresh snapshot. Several
    changes between two reads collapse into one snapshot (last snapshot wins).
    """

    def __init__(self, feed: "ChangeFeed", collection: str, loader: Callable[[], Snapshot]):
        self.feed = feed
        self.collection = collection
        self._loader = loader
        self._cond = threading.Condition()
        self._dirty = True
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self):
        with self._cond:
            self._dirty = True
            self._cond.notify_all()

    def next_snapshot(self, timeout: Optional[float] = None) -> Optional[Snapshot]:
        """Block until a new snapshot is due; None on timeout or once closed."""
        with self._cond:
            ready = self._cond.wait_for(lambda: self._dirty or self._closed, timeout)
            if not ready or self._closed:
                return None
            self._dirty = False
        return self._loader()

    def close(self):
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self.feed.unsubscribe(self)

    def __iter__(self):
        return self

    def __next__(self) -> Snapshot:
        snapshot = self.next_snapshot()
        if snapshot is None:
            raise StopIteration
        return snapshot

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Set[SnapshotStream]] = defaultdict(set)

    def subscribe(self, collection: str, loader: Callable[[], Snapshot]) -> SnapshotStream:
        stream = SnapshotStream(self, collection, loader)
        with self._lock:
            self._subscribers[collection].add(stream)
        return stream

    def unsubscribe(self, stream: SnapshotStream):
        with self._lock:
            self._subscribers[stream.collection].discard(stream)

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscribers[collection])

    def publish(self, collection: str):
        with self._lock:
            targets = list(self._subscribers[collection])
        log.debug("publish %s to %d subscriber(s)", collection, len(targets))
        for stream in targets:
            stream.notify()


change_feed = ChangeFeed()


def mark_touched(session, collection: str):
    session.info.setdefault(TOUCHED_KEY, set()).add(collection)


@event.listens_for(SessionLocal, "after_commit")
def _publish_committed(session):
    for collection in session.info.pop(TOUCHED_KEY, set()):
        change_feed.publish(collection)


@event.listens_for(SessionLocal, "after_rollback")
def _discard_uncommitted(session):
    session.info.pop(TOUCHED_KEY, None)
