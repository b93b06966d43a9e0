import pytest

from backoffice.adapters.blob_storage import LocalBlobStorage
from backoffice.db import SessionLocal, init_db
from backoffice.models.document import CARTS, MENU
from backoffice.repositories.document_repo import DocumentRepository, WriteBatch
from backoffice.services.menu_service import (
    ImageUpload,
    MenuItemNotFound,
    MenuItemStillListed,
    MenuService,
)


def setup_module(module):
    init_db(reset=True)


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(root_dir=str(tmp_path), public_base_url="http://cdn.test/blobs")


def _item(db, name, stock=10):
    item_id = DocumentRepository(db).create(MENU, {"name": name, "stock": stock, "price": 4.5})
    db.commit()
    return item_id


def _cart(db, cart_id, *menu_ids):
    items = [{"menuItemId": mid, "quantity": 1} for mid in menu_ids]
    DocumentRepository(db).set(CARTS, cart_id, {"items": items})
    db.commit()


def _cart_items(cart_id):
    s = SessionLocal()
    try:
        return [it["menuItemId"] for it in DocumentRepository(s).get(CARTS, cart_id)["items"]]
    finally:
        s.close()


def test_delete_strips_item_from_referencing_carts_only(db, storage):
    doomed = _item(db, "Pizza")
    keep = _item(db, "Salad")
    _cart(db, "c1", doomed)
    _cart(db, "c2", keep, doomed)
    _cart(db, "c3", doomed, keep)
    _cart(db, "c4", keep)

    report = MenuService(db, storage=storage).delete_item(doomed)

    assert report.deleted
    assert sorted(report.carts_updated) == ["c1", "c2", "c3"]
    assert [n.message for n in report.notices] == [
        "Menu item deleted successfully",
        "Menu item removed from all carts",
    ]
    assert _cart_items("c1") == []
    assert _cart_items("c2") == [keep]
    assert _cart_items("c3") == [keep]
    assert _cart_items("c4") == [keep]
    assert DocumentRepository(db).get(MENU, doomed) is None


def test_delete_with_no_referencing_carts_updates_nothing(db, storage, monkeypatch):
    lonely = _item(db, "Soup")
    staged = []
    original_commit = WriteBatch.commit

    def spy_commit(self):
        staged.append(len(self))
        return original_commit(self)

    monkeypatch.setattr(WriteBatch, "commit", spy_commit)
    report = MenuService(db, storage=storage).delete_item(lonely)

    assert report.carts_updated == []
    assert staged == [0]


def test_failed_delete_never_scans_carts(db, storage, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("carts must not be scanned")

    monkeypatch.setattr(MenuService, "remove_from_carts", boom)
    monkeypatch.setattr(WriteBatch, "commit", boom)
    with pytest.raises(MenuItemNotFound):
        MenuService(db, storage=storage).delete_item("missing-item")


def test_mid_batch_failure_leaves_every_cart_untouched(db, storage, monkeypatch):
    doomed = _item(db, "Taco")
    _cart(db, "m1", doomed)
    _cart(db, "m2", doomed)
    _cart(db, "m3", doomed)

    calls = {"n": 0}
    original_apply = WriteBatch._apply

    def flaky_apply(self, op, collection, doc_id, payload):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("store went away")
        return original_apply(self, op, collection, doc_id, payload)

    monkeypatch.setattr(WriteBatch, "_apply", flaky_apply)
    report = MenuService(db, storage=storage).delete_item(doomed)

    assert report.deleted
    assert not report.cleanup_ok
    assert report.notices[-1].level == "error"
    assert report.carts_updated == []
    for cart_id in ("m1", "m2", "m3"):
        assert _cart_items(cart_id) == [doomed]
    # no compensating restore of the deleted item
    assert DocumentRepository(db).get(MENU, doomed) is None


def test_cleanup_rerun_is_idempotent(db, storage):
    doomed = _item(db, "Wrap")
    _cart(db, "r1", doomed)
    svc = MenuService(db, storage=storage)
    svc.delete_item(doomed)
    assert svc.remove_from_carts(doomed) == []
    assert _cart_items("r1") == []


def test_cleanup_rerun_clears_references_left_by_a_failed_pass(db, storage):
    doomed = _item(db, "Nachos")
    svc = MenuService(db, storage=storage)
    svc.delete_item(doomed)
    # a cart written after the cleanup pass still points at the item
    _cart(db, "late", doomed)
    assert svc.remove_from_carts(doomed) == ["late"]
    assert _cart_items("late") == []


def test_only_first_duplicate_is_removed_per_pass(db, storage):
    doomed = _item(db, "Donut")
    _cart(db, "dup", doomed, doomed)
    svc = MenuService(db, storage=storage)
    svc.delete_item(doomed)
    assert _cart_items("dup") == [doomed]
    svc.remove_from_carts(doomed)
    assert _cart_items("dup") == []


def test_create_update_keep_image_url(db, storage):
    svc = MenuService(db, storage=storage)
    item = svc.create_item(
        {"name": "Latte", "price": 3.2, "stock": 12, "category": "Drinks"},
        image=ImageUpload(data=b"\x89PNG fake", content_type="image/png"),
    )
    assert item["imageURL"] == "http://cdn.test/blobs/menuImages/Latte"
    assert storage.get_metadata("menuImages/Latte")["cacheControl"] == "public,max-age=31536000"

    updated = svc.update_item(item["id"], {"name": "Latte", "price": 3.5, "stock": 12})
    assert updated["price"] == 3.5
    assert updated["imageURL"] == item["imageURL"]
    assert svc.get_item(item["id"]).get("category") is None


def test_search_matches_name_or_stock(db, storage):
    svc = MenuService(db, storage=storage)
    svc.create_item({"name": "Espresso", "stock": 77})
    names = [it["name"] for it in svc.list_items(q="espr")]
    assert names == ["Espresso"]
    assert "Espresso" in [it["name"] for it in svc.list_items(q="77")]


def test_rerun_cleanup_only_for_items_gone_from_the_menu(db, storage):
    live = _item(db, "Falafel")
    _cart(db, "live-cart", live)
    svc = MenuService(db, storage=storage)
    with pytest.raises(MenuItemStillListed):
        svc.rerun_cleanup(live)
    assert _cart_items("live-cart") == [live]

    svc.delete_item(live)
    _cart(db, "live-cart", live)
    assert svc.rerun_cleanup(live) == ["live-cart"]
    assert _cart_items("live-cart") == []


def test_update_overwrites_counters_left_out(db, storage):
    svc = MenuService(db, storage=storage)
    item = svc.create_item({"name": "Kulfi", "price": 2.0, "stock": 9, "sold": 4})
    updated = svc.update_item(item["id"], {"name": "Kulfi", "price": 2.5})
    assert updated["stock"] == 0
    assert updated["sold"] == 0
    assert svc.get_item(item["id"])["stock"] == 0
