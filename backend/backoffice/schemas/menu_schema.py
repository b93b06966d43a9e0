# backend/backoffice/schemas/menu_schema.py
from typing import Optional

from pydantic import BaseModel, Field


class MenuItemIn(BaseModel):
    name: str = Field(..., min_length=1, description="Display name, also the image key")
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(0, ge=0, description="Unit price")
    stock: int = Field(0, ge=0, description="Units in stock")
    sold: int = Field(0, ge=0, description="Units sold so far")
    imageURL: Optional[str] = None


class BulkStockIn(BaseModel):
    amount: int = Field(..., ge=1, description="Units to add or remove")
    direction: str = Field(..., pattern="^(add|remove)$")


class CartItemIn(BaseModel):
    menuItemId: str
    quantity: int = Field(1, ge=1)
