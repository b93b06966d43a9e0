import logging
from dataclasses import asdict, dataclass, field
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from backoffice.adapters.blob_storage import LocalBlobStorage
from backoffice.config import settings
from backoffice.models.document import CARTS, MENU
from backoffice.repositories.document_repo import DocumentNotFound, DocumentRepository
from backoffice.services.stock_service import search_items
from backoffice.utils.transactions import atomic

log = logging.getLogger(__name__)

IMAGE_PREFIX = "menuImages"

MENU_FIELDS = ("name", "description", "category", "price", "stock", "sold", "imageURL")


class MenuException(Exception):
    pass


class MenuItemNotFound(MenuException):
    def __init__(self, item_id: str):
        super().__init__(f"Menu item {item_id} not found")
        self.item_id = item_id


class MenuItemStillListed(MenuException):
    def __init__(self, item_id: str):
        super().__init__(f"Menu item {item_id} is still on the menu")
        self.item_id = item_id


class ImageUpload(NamedTuple):
    data: bytes
    content_type: str = "image/jpeg"


@dataclass
class Notice:
    level: str  # "success" | "error"
    message: str


@dataclass
class DeletionReport:
    item_id: str
    deleted: bool = False
    carts_updated: List[str] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)

    @property
    def cleanup_ok(self) -> bool:
        return not any(n.level == "error" for n in self.notices)

    def to_dict(self) -> dict:
        return asdict(self)


def _clean(data: dict) -> dict:
    item = {k: data.get(k) for k in MENU_FIELDS if k in data}
    if not str(item.get("name") or "").strip():
        raise MenuException("Name is required")
    for counter in ("stock", "sold"):
        value = int(item.get(counter) or 0)
        if value < 0:
            raise MenuException(f"{counter} cannot be negative")
        item[counter] = value
    item["price"] = float(item.get("price") or 0)
    if item["price"] < 0:
        raise MenuException("price cannot be negative")
    return item


class MenuService:
    def __init__(self, db: Session, storage: Optional[LocalBlobStorage] = None):
        self.db = db
        self.repo = DocumentRepository(db)
        self.storage = storage or LocalBlobStorage()

    def list_items(self, q: Optional[str] = None) -> List[dict]:
        return search_items(self.repo.list(MENU), q)

    def get_item(self, item_id: str) -> dict:
        item = self.repo.get(MENU, item_id)
        if item is None:
            raise MenuItemNotFound(item_id)
        return item

    def _store_image(self, name: str, image: ImageUpload) -> str:
        key = f"{IMAGE_PREFIX}/{name}"
        self.storage.upload(key, image.data, content_type=image.content_type)
        self.storage.set_metadata(key, cache_control=settings.IMAGE_CACHE_CONTROL)
        return self.storage.get_download_url(key)

    def create_item(self, data: dict, image: Optional[ImageUpload] = None) -> dict:
        item = _clean(data)
        if image is not None:
            item["imageURL"] = self._store_image(item["name"], image)
        item.setdefault("imageURL", None)
        with atomic(self.db):
            item_id = self.repo.create(MENU, item)
        log.info("menu item %s created (%s)", item_id, item["name"])
        return {**item, "id": item_id}

    def update_item(self, item_id: str, data: dict, image: Optional[ImageUpload] = None) -> dict:
        """
        Overwrite the whole record; the stored imageURL is kept unless a new image comes in.

        Fields left out of ``data`` are not carried over, so a missing stock or
        sold counter is written as 0.
        """
        existing = self.get_item(item_id)
        item = _clean(data)
        if image is not None:
            item["imageURL"] = self._store_image(item["name"], image)
        elif not item.get("imageURL"):
            item["imageURL"] = existing.get("imageURL")
        with atomic(self.db):
            self.repo.set(MENU, item_id, item)
        log.info("menu item %s saved", item_id)
        return {**item, "id": item_id}

    def attach_image(self, item_id: str, image: ImageUpload) -> dict:
        existing = self.get_item(item_id)
        return self.update_item(item_id, existing, image=image)

    def delete_item(self, item_id: str) -> DeletionReport:
        """
        Delete a menu item, then strip it from every cart.

        A failed delete raises and no cart is touched. Once the delete has
        committed, a failure while cleaning carts is reported on the returned
        DeletionReport; the item is not restored.
        """
        report = DeletionReport(item_id=item_id)
        try:
            with atomic(self.db):
                self.repo.delete(MENU, item_id)
        except DocumentNotFound:
            raise MenuItemNotFound(item_id)
        report.deleted = True
        report.notices.append(Notice("success", "Menu item deleted successfully"))
        log.info("menu item %s deleted", item_id)

        try:
            report.carts_updated = self.remove_from_carts(item_id)
        except Exception:
            log.exception("removing menu item %s from carts failed", item_id)
            report.notices.append(Notice("error", "Error removing menu item from carts"))
        else:
            report.notices.append(Notice("success", "Menu item removed from all carts"))
        return report

    def rerun_cleanup(self, item_id: str) -> List[str]:
        """Clear cart lines left behind for an item that is no longer on the menu."""
        if self.repo.exists(MENU, item_id):
            raise MenuItemStillListed(item_id)
        return self.remove_from_carts(item_id)

    def remove_from_carts(self, item_id: str) -> List[str]:
        """
        Scan every cart and drop the first line referencing ``item_id``.

        Matching carts are updated in one batch. Returns the ids of the carts
        that changed; once no cart references the id, another run changes nothing.
        """
        batch = self.repo.batch()
        touched = []
        for cart in self.repo.list(CARTS):
            items = cart.get("items") or []
            idx = next(
                (
                    i
                    for i, line in enumerate(items)
                    if isinstance(line, dict) and line.get("menuItemId") == item_id
                ),
                None,
            )
            if idx is None:
                continue
            batch.update(CARTS, cart["id"], {"items": items[:idx] + items[idx + 1 :]})
            touched.append(cart["id"])
        batch.commit()
        log.info("menu item %s removed from %d cart(s)", item_id, len(touched))
        return touched
