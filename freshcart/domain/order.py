"""
Order Domain Models

Orders are written once by the placement workflow and read back for
purchase history. OrderItem.price is the unit price frozen at order time.

Author: TM3
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from freshcart.domain.cart import CartState

MIN_PHONE_LENGTH = 10
MIN_ADDRESS_LENGTH = 10


class OrderItem(BaseModel):
    """
    A line of an order.

    Fields:
        id: Order item ID
        order_id: Parent order ID
        product_id: Product ordered
        quantity: Units ordered
        price: Unit price captured when the order was placed
        product_name: Current catalog name (from JOIN, display only)
        unit: Current catalog unit (from JOIN, display only)
    """

    id: Optional[str] = Field(None, description="Order item ID")
    order_id: Optional[int] = Field(None, description="Parent order ID")
    product_id: str = Field(..., description="Product ID")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    price: Decimal = Field(..., description="Unit price at order time", ge=0)

    product_name: Optional[str] = Field(None, description="Product name from catalog")
    unit: Optional[str] = Field(None, description="Product unit from catalog")

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product": self.product_name or "Unknown Product",
            "quantity": self.quantity,
            "unit": self.unit,
            "price": float(self.price),
            "total": float(self.line_total)
        }


class Order(BaseModel):
    """Customer order with its items"""

    id: int = Field(..., description="Order ID")
    user_id: str = Field(..., description="Customer user ID")
    total_amount: Decimal = Field(..., description="Order total", ge=0)
    status: str = Field("Pending", description="Order status")
    delivery_address: Optional[str] = Field(None, description="Delivery address")
    customer_name: Optional[str] = Field(None, description="Customer name")
    customer_phone: Optional[str] = Field(None, description="Customer phone")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    items: List[OrderItem] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict:
        return {
            "orderId": self.id,
            "status": self.status,
            "totalAmount": float(self.total_amount),
            "placedAt": self.created_at.isoformat() if self.created_at else None,
            "deliveryAddress": self.delivery_address,
            "itemCount": self.item_count,
            "items": [item.to_dict() for item in self.items]
        }


class UserProfile(BaseModel):
    """Delivery profile kept in the auth user's metadata"""

    full_name: str = ""
    phone: str = ""
    address: str = ""

    @property
    def is_complete(self) -> bool:
        return (
            len(self.phone.strip()) >= MIN_PHONE_LENGTH
            and len(self.address.strip()) >= MIN_ADDRESS_LENGTH
        )


class PlacedOrder(BaseModel):
    """Outcome of the order placement workflow"""

    order_id: int
    total_amount: Decimal
    item_count: int
    cart_cleared: bool = True
    warning: Optional[str] = None
    # Cart re-read after placement; None if that read failed
    cart_after: Optional[CartState] = None
