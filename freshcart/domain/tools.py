"""
Tool Argument Schemas and Response Envelope

Voice-agent hosts send loosely typed key/value bundles with camelCase keys.
Each tool validates its bundle here so the resolver only sees typed values.

Author: TM3
"""
import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

MAX_PRODUCT_LIMIT = 50
DEFAULT_PRODUCT_LIMIT = 10
MAX_HISTORY_LIMIT = 20
DEFAULT_HISTORY_LIMIT = 3


class ToolErrorType(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RESOLUTION = "resolution"
    BUSINESS_RULE = "business_rule"
    DEPENDENCY = "dependency"


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _clamp(value: Any, default: int, lower: int, upper: int) -> int:
    number = _to_number(value)
    if number is None or not math.isfinite(number):
        return default
    return max(lower, min(upper, int(math.floor(number))))


class ToolArgs(BaseModel):
    """Base for tool argument models"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class EmptyArgs(ToolArgs):
    pass


class ProductNameArgs(ToolArgs):
    product_name: str = Field(..., alias="productName")

    @field_validator("product_name", mode="before")
    @classmethod
    def _require_name(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Product name is required.")
        return value


class AddItemArgs(ProductNameArgs):
    quantity: int = 1

    @field_validator("quantity", mode="before")
    @classmethod
    def _at_least_one(cls, value):
        # Anything unusable becomes 1; fractions round down
        number = _to_number(value)
        if number is None or not math.isfinite(number):
            return 1
        return max(1, int(math.floor(number)))


class RemoveItemArgs(ProductNameArgs):
    pass


class UpdateQuantityArgs(ProductNameArgs):
    # Negative values pass validation; the tool rejects them with guidance
    quantity: int

    @field_validator("quantity", mode="before")
    @classmethod
    def _whole_number(cls, value):
        number = _to_number(value)
        if number is None or not math.isfinite(number):
            raise ValueError("Quantity must be a whole number.")
        return int(math.floor(number))


class AvailableProductsArgs(ToolArgs):
    category: Optional[str] = None
    search_term: Optional[str] = Field(None, alias="searchTerm")
    limit: int = DEFAULT_PRODUCT_LIMIT

    @field_validator("limit", mode="before")
    @classmethod
    def _bounded(cls, value):
        return _clamp(value, DEFAULT_PRODUCT_LIMIT, 1, MAX_PRODUCT_LIMIT)


class PurchaseHistoryArgs(ToolArgs):
    limit: int = DEFAULT_HISTORY_LIMIT
    order_id: Optional[int] = Field(None, alias="orderId")

    @field_validator("limit", mode="before")
    @classmethod
    def _bounded(cls, value):
        return _clamp(value, DEFAULT_HISTORY_LIMIT, 1, MAX_HISTORY_LIMIT)

    @field_validator("order_id", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value


def describe_validation_error(exc: ValidationError) -> str:
    """Turn a pydantic ValidationError into a sentence a caller can act on"""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "input"
        if error.get("type") == "missing":
            messages.append(f"{field} is required.")
        else:
            message = error.get("msg", "is invalid")
            messages.append(message.replace("Value error, ", ""))
    return " ".join(messages)


def tool_success(message: str, **fields) -> dict:
    """Success envelope"""
    return {"success": True, "message": message, **fields}


def tool_failure(message: str, error_type: ToolErrorType, **fields) -> dict:
    """Failure envelope; message always says what to do next"""
    return {"success": False, "message": message, "error_type": error_type.value, **fields}
