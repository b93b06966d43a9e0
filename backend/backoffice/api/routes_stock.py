from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.api.deps import require_admin
from backoffice.db import get_db
from backoffice.schemas.menu_schema import BulkStockIn
from backoffice.services.auth_service import SessionContext
from backoffice.services.stock_service import (
    InventoryItemNotFound,
    StockException,
    StockService,
    low_stock,
    search_items,
)

router = APIRouter(prefix="/api/stock", tags=["stock"])


@router.get("", summary="Stock levels with low-stock alert")
def list_stock(
    q: Optional[str] = Query(None, description="search term"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    items = StockService(db).list_stock()
    return {"items": search_items(items, q), "low_stock": low_stock(items)}


@router.get("/low", summary="Items below the low-stock threshold")
def list_low_stock(
    threshold: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return {"items": StockService(db).low_stock(threshold)}


def _mutate(fn, item_id: str):
    try:
        return {"id": item_id, "stock": fn()}
    except InventoryItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StockException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{item_id}/increment", summary="Stock in (+1)")
def increment(
    item_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return _mutate(lambda: StockService(db).change_stock(item_id, increment=True), item_id)


@router.post("/{item_id}/decrement", summary="Stock out (-1, never below zero)")
def decrement(
    item_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return _mutate(lambda: StockService(db).change_stock(item_id, increment=False), item_id)


@router.post("/{item_id}/bulk", summary="Bulk stock update")
def bulk_update(
    item_id: str,
    payload: BulkStockIn,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    svc = StockService(db)
    return _mutate(
        lambda: svc.bulk_update(item_id, payload.amount, increment=payload.direction == "add"),
        item_id,
    )
