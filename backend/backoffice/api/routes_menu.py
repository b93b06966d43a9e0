from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from backoffice.adapters.blob_storage import BlobStorageError, LocalBlobStorage
from backoffice.api.deps import get_blob_storage, require_admin
from backoffice.api.streaming import snapshot_response
from backoffice.db import get_db
from backoffice.models.document import MENU
from backoffice.repositories.document_repo import watch
from backoffice.schemas.menu_schema import MenuItemIn
from backoffice.services.auth_service import SessionContext
from backoffice.services.menu_service import (
    ImageUpload,
    MenuException,
    MenuItemNotFound,
    MenuItemStillListed,
    MenuService,
)

router = APIRouter(prefix="/api/menu", tags=["menu"])

MAX_IMAGE_BYTES = 25 * 1024 * 1024


def _service(db: Session, storage: LocalBlobStorage) -> MenuService:
    return MenuService(db, storage=storage)


@router.get("", summary="List menu items")
def list_items(
    q: Optional[str] = Query(None, description="search term"),
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    items = _service(db, storage).list_items(q=q)
    return {"items": items, "total": len(items)}


@router.get("/stream", summary="Live menu snapshots (Server-Sent Events)")
def stream_items(
    request: Request,
    limit: Optional[int] = Query(None, ge=1),
    ctx: SessionContext = Depends(require_admin),
):
    return snapshot_response(watch(MENU), request=request, limit=limit)


@router.get("/{item_id}", summary="Get menu item")
def get_item(
    item_id: str,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        return _service(db, storage).get_item(item_id)
    except MenuItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", status_code=201, summary="Add menu item")
def create_item(
    payload: MenuItemIn,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        return _service(db, storage).create_item(payload.model_dump())
    except MenuException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{item_id}", summary="Overwrite menu item")
def update_item(
    item_id: str,
    payload: MenuItemIn,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        return _service(db, storage).update_item(item_id, payload.model_dump())
    except MenuItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MenuException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{item_id}/image", summary="Upload menu item image")
async def upload_image(
    item_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    content_type = (file.content_type or "").strip().lower()
    if content_type and not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty image")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail="Image size must be less than 25MB")
    image = ImageUpload(data=data, content_type=content_type or "image/jpeg")
    try:
        return _service(db, storage).attach_image(item_id, image)
    except MenuItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (MenuException, BlobStorageError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{item_id}", summary="Delete menu item and remove it from carts")
def delete_item(
    item_id: str,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        report = _service(db, storage).delete_item(item_id)
    except MenuItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return report.to_dict()


@router.post("/{item_id}/cart-cleanup", summary="Re-run cart cleanup for a deleted item")
def cart_cleanup(
    item_id: str,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_blob_storage),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        carts = _service(db, storage).rerun_cleanup(item_id)
    except MenuItemStillListed as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"item_id": item_id, "carts_updated": carts}
