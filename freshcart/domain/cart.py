"""
Cart Domain Models

Author: TM3
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from freshcart.domain.product import Product


class CartItem(BaseModel):
    """
    A cart row joined with its product.

    (user_id, product_id) is unique; quantity is always positive. A row
    whose quantity would reach zero is deleted instead.
    """

    id: Optional[str] = Field(None, description="Cart row ID")
    user_id: str = Field(..., description="Owner")
    product_id: str = Field(..., description="Product ID")
    quantity: int = Field(..., description="Units in cart", ge=1)
    product: Product = Field(..., description="Joined product")

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.product.name,
            "price": float(self.product.price),
            "quantity": self.quantity,
            "unit": self.product.unit,
            "total": float(self.line_total),
            "image_url": self.product.image_url,
            "stock_quantity": self.product.stock_quantity
        }


class CartState(BaseModel):
    """
    Authoritative cart contents as fetched right now.

    ``success=False`` means the cart could not be read. It must never be
    interpreted as an empty cart.
    """

    success: bool = True
    items: List[CartItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    item_count: int = 0
    error: Optional[str] = None

    @classmethod
    def from_items(cls, items: List[CartItem]) -> "CartState":
        """Build a state, deriving totals from the items themselves"""
        total_amount = sum((item.line_total for item in items), Decimal("0"))
        item_count = sum(item.quantity for item in items)
        return cls(items=items, total_amount=total_amount, item_count=item_count)

    @classmethod
    def failed(cls, error: str) -> "CartState":
        return cls(success=False, error=error)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_product(self, product_id: str) -> Optional[CartItem]:
        """Cart row for a product, if present"""
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def summary(self) -> dict:
        return {
            "itemCount": self.item_count,
            "totalAmount": float(self.total_amount)
        }
