from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.api.deps import get_session_context
from backoffice.db import get_db
from backoffice.schemas.menu_schema import CartItemIn
from backoffice.services.auth_service import SessionContext
from backoffice.services.cart_service import CartException, CartService

router = APIRouter(prefix="/api/carts", tags=["cart"])


@router.get("/{cart_id}", summary="Get cart")
def get_cart(
    cart_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return CartService(db).get_cart(cart_id)


@router.post("/{cart_id}/items", summary="Add item to cart")
def add_item(
    cart_id: str,
    payload: CartItemIn,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    try:
        return CartService(db).add_item(cart_id, payload.menuItemId, payload.quantity)
    except CartException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{cart_id}/items/{menu_item_id}", summary="Remove item")
def remove_item(
    cart_id: str,
    menu_item_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return CartService(db).remove_item(cart_id, menu_item_id)
