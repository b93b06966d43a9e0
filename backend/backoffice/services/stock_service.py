import logging
import os
import tempfile
from typing import Iterable, List, Optional

from filelock import FileLock, Timeout
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.models.document import MENU
from backoffice.repositories.document_repo import DocumentNotFound, DocumentRepository

log = logging.getLogger(__name__)


class StockException(Exception):
    pass


class InventoryItemNotFound(StockException):
    def __init__(self, item_id: str):
        super().__init__(f"Menu item {item_id} not found")
        self.item_id = item_id


def apply_increment(stock: int, amount: int) -> int:
    return stock + amount


def apply_decrement(stock: int, amount: int) -> int:
    # stock never goes below zero
    return max(0, stock - amount)


def low_stock(items: Iterable[dict], threshold: Optional[int] = None) -> List[dict]:
    """Items whose stock is strictly below ``threshold`` (LOW_STOCK_THRESHOLD by default)."""
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    return [it for it in items if int(it.get("stock") or 0) < threshold]


def search_items(items: Iterable[dict], q: Optional[str]) -> List[dict]:
    """Case-insensitive name match, or the query appearing in the stock figure."""
    if not q:
        return list(items)
    needle = q.lower()
    return [
        it
        for it in items
        if needle in str(it.get("name") or "").lower() or q in str(it.get("stock", ""))
    ]


class StockService:
    """
    Stock counter mutations on menu items.

    By default each change is a plain read followed by a write of the new
    value, so two concurrent changes to the same item can overwrite each
    other. With STOCK_ATOMIC_UPDATES enabled the read-modify-write is held
    under a per-item file lock.
    """

    def __init__(self, db: Session, atomic_updates: Optional[bool] = None):
        self.db = db
        self.repo = DocumentRepository(db)
        if atomic_updates is None:
            atomic_updates = settings.STOCK_ATOMIC_UPDATES
        self.atomic_updates = atomic_updates

    def list_stock(self) -> List[dict]:
        return [
            {"id": it["id"], "name": it.get("name"), "stock": int(it.get("stock") or 0)}
            for it in self.repo.list(MENU)
        ]

    def low_stock(self, threshold: Optional[int] = None) -> List[dict]:
        return low_stock(self.list_stock(), threshold)

    def change_stock(self, item_id: str, increment: bool) -> int:
        """Single step: +1 or -1 (clamped at zero). Returns the new stock."""
        return self._mutate(item_id, 1, increment)

    def bulk_update(self, item_id: str, amount: int, increment: bool) -> int:
        """Add or remove ``amount`` units. Returns the new stock."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise StockException("Amount must be a positive integer")
        return self._mutate(item_id, amount, increment)

    def _mutate(self, item_id: str, amount: int, increment: bool) -> int:
        if not self.atomic_updates:
            return self._read_modify_write(item_id, amount, increment)

        locks_dir = os.path.join(tempfile.gettempdir(), "backoffice_locks")
        os.makedirs(locks_dir, exist_ok=True)
        lock = FileLock(os.path.join(locks_dir, f"stock_{item_id}.lock"))
        try:
            with lock.acquire(timeout=settings.STOCK_LOCK_TIMEOUT_SECONDS):
                # drop cached rows so the read under the lock sees the latest commit
                self.db.expire_all()
                return self._read_modify_write(item_id, amount, increment)
        except Timeout:
            raise StockException("Could not acquire stock lock; try again")

    def _read_modify_write(self, item_id: str, amount: int, increment: bool) -> int:
        item = self.repo.get(MENU, item_id)
        if item is None:
            raise InventoryItemNotFound(item_id)
        current = int(item.get("stock") or 0)
        if increment:
            new_stock = apply_increment(current, amount)
        else:
            new_stock = apply_decrement(current, amount)
        try:
            self.repo.update(MENU, item_id, {"stock": new_stock})
        except DocumentNotFound:
            self.db.rollback()
            raise InventoryItemNotFound(item_id)
        self.db.commit()
        log.info("stock %s: %d -> %d", item_id, current, new_stock)
        return new_stock
