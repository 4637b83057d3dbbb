"""
Product and Category Domain Models

Read-only catalog entities as seen by the core. Stock is decremented by
the storage layer when orders are fulfilled, never by this service.

Author: TM3
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    """Product category (Fruits, Vegetables, Dairy, ...)"""

    id: str = Field(..., description="Category ID (uuid)")
    name: str = Field(..., description="Category name")
    description: Optional[str] = Field(None, description="Category description")
    image_url: Optional[str] = Field(None, description="Category image")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    model_config = ConfigDict(from_attributes=True)


class Product(BaseModel):
    """
    Product domain model - a sellable grocery item

    Fields:
        id: Product ID (uuid)
        name: Product name, the primary key for voice/text matching
        description: Optional free text, secondary matching field
        price: Current unit price
        image_url: Optional image reference
        category_id: Owning category
        stock_quantity: Units available (never negative)
        unit: Unit label ("kg", "piece", "liter", ...)
        created_at: Creation timestamp
        category: Joined category, when loaded with the catalog
    """

    id: str = Field(..., description="Product ID (uuid)")
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: Decimal = Field(..., description="Unit price", ge=0)
    image_url: Optional[str] = Field(None, description="Image reference")
    category_id: Optional[str] = Field(None, description="Category ID")
    stock_quantity: int = Field(0, description="Units in stock", ge=0)
    unit: str = Field("piece", description="Unit label")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    category: Optional[Category] = Field(None, description="Joined category")

    model_config = ConfigDict(from_attributes=True)

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category else None

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity <= 0

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal price as float"""
        data = self.model_dump(exclude={"category"})
        data["price"] = float(self.price)
        data["category_name"] = self.category_name
        data["is_out_of_stock"] = self.is_out_of_stock
        return data
