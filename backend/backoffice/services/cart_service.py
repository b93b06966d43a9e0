from sqlalchemy.orm import Session

from backoffice.models.document import CARTS, MENU
from backoffice.repositories.document_repo import DocumentRepository
from backoffice.utils.transactions import atomic


class CartException(Exception):
    pass


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository(db)

    def get_cart(self, cart_id: str) -> dict:
        cart = self.repo.get(CARTS, cart_id)
        if cart is None:
            return {"id": cart_id, "items": []}
        cart.setdefault("items", [])
        return cart

    def add_item(self, cart_id: str, menu_item_id: str, quantity: int = 1) -> dict:
        if quantity <= 0:
            raise CartException("Quantity must be positive")
        if not self.repo.exists(MENU, menu_item_id):
            raise CartException("Menu item not found")
        cart = self.get_cart(cart_id)
        items = cart["items"]
        line = next((it for it in items if it.get("menuItemId") == menu_item_id), None)
        if line:
            line["quantity"] = int(line.get("quantity") or 0) + quantity
        else:
            items.append({"menuItemId": menu_item_id, "quantity": quantity})
        with atomic(self.db):
            self.repo.set(CARTS, cart_id, {**cart, "items": items})
        return cart

    def remove_item(self, cart_id: str, menu_item_id: str) -> dict:
        cart = self.get_cart(cart_id)
        items = [it for it in cart["items"] if it.get("menuItemId") != menu_item_id]
        if len(items) != len(cart["items"]):
            with atomic(self.db):
                self.repo.set(CARTS, cart_id, {**cart, "items": items})
        cart["items"] = items
        return cart
