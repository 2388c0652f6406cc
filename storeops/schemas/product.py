from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storeops.schemas.common import PaginationMeta

StockStatusFilter = Literal["low_stock", "out_of_stock", "in_stock"]


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class ProductCreate(BaseModel):
    sku: str = Field(max_length=100)
    name: str = Field(max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    category_id: Optional[str] = None
    price: Decimal = Field(gt=0)
    stock: int = Field(default=0, ge=0)
    min_stock_threshold: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True

    @field_validator("sku", "name")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("description", "category")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _clean_optional(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sku": "MUG-BLU",
                "name": "Blue Mug",
                "description": "Stoneware, 350ml",
                "category": "kitchen",
                "price": 12.5,
                "stock": 40,
                "min_stock_threshold": 5,
                "is_active": True,
            }
        }
    )


class ProductUpdate(BaseModel):
    """Counters are changed through stock adjustments, never here."""

    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    category_id: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0)
    min_stock_threshold: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be blank")
        return cleaned

    @field_validator("description", "category")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _clean_optional(value)


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[str] = None
    price: float
    stock: int
    physical_inventory: int
    min_stock_threshold: int
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductListOut(BaseModel):
    items: list[ProductOut]
    pagination: PaginationMeta


class LowStockProductOut(BaseModel):
    id: str
    sku: str
    name: str
    category: Optional[str] = None
    stock: int
    physical_inventory: int
    min_stock_threshold: int


class LowStockListOut(BaseModel):
    items: list[LowStockProductOut]


class StockAdjustIn(BaseModel):
    quantity: int = Field(
        ..., description="Positive adds stock, negative removes stock. Cannot be zero."
    )
    reason: str = Field(..., min_length=1, max_length=255)

    @field_validator("quantity")
    @classmethod
    def validate_non_zero_quantity(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity cannot be zero")
        return value

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("reason is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "quantity": -2,
                "reason": "Damaged during unpacking",
            }
        }
    )


class StockAdjustOut(BaseModel):
    product_id: str
    previous_stock: int
    new_stock: int
    physical_inventory: int
    message: str = "Stock adjusted successfully"


class BulkStockAdjustItemIn(BaseModel):
    product_id: str
    quantity: int
    reason: str


class BulkStockAdjustIn(BaseModel):
    adjustments: list[BulkStockAdjustItemIn] = Field(min_length=1, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "adjustments": [
                    {"product_id": "product-id-1", "quantity": 12, "reason": "Scanner receiving"},
                    {"product_id": "product-id-2", "quantity": -1, "reason": "Scanner count correction"},
                ]
            }
        }
    )


class BulkStockAdjustResultOut(BaseModel):
    product_id: str
    success: bool
    new_stock: int | None = None
    error: str | None = None


class BulkStockAdjustOut(BaseModel):
    results: list[BulkStockAdjustResultOut]
    succeeded: int
    failed: int


class PhysicalInventorySyncOut(BaseModel):
    updated: int
    total_products: int
