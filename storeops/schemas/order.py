from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storeops.schemas.common import PaginationMeta

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ALLOWED_ORDER_STATUSES = {"pending", "processing", "shipped", "delivered", "cancelled"}


class OrderDetailsIn(BaseModel):
    customer_name: str = Field(max_length=200)
    customer_email: EmailStr
    customer_phone: str = Field(max_length=50)
    shipping_address: str
    payment_method: str = Field(default="cod", max_length=30)
    notes: Optional[str] = None

    @field_validator("customer_name", "customer_phone", "shipping_address")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("payment_method")
    @classmethod
    def normalize_payment_method(cls, value: str) -> str:
        return value.strip().lower() or "cod"


class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    order: OrderDetailsIn
    items: list[OrderItemIn] = Field(min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "order": {
                    "customer_name": "Jane Doe",
                    "customer_email": "jane@example.com",
                    "customer_phone": "+1 555 0100",
                    "shipping_address": "12 Market St, Springfield",
                    "payment_method": "cod",
                    "notes": "Leave at the front desk",
                },
                "items": [{"product_id": "product-id-here", "quantity": 2}],
            }
        }
    )


class OrderStatusUpdateIn(BaseModel):
    status: OrderStatus

    model_config = ConfigDict(json_schema_extra={"example": {"status": "processing"}})


class OrderAssignIn(BaseModel):
    assigned_user_id: str


class PackItemIn(BaseModel):
    product_id: str


class FulfillItemIn(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class OrderItemOut(BaseModel):
    id: str
    line_no: int
    product_id: str | None = None
    product_name: str
    product_sku: str | None = None
    product_price: float
    quantity: int
    subtotal: float
    fulfilled: bool


class OrderOut(BaseModel):
    id: str
    order_number: str
    customer_id: str | None = None
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    total: float
    status: str
    payment_method: str
    assigned_user_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderDetailOut(OrderOut):
    items: list[OrderItemOut]


class OrderListOut(BaseModel):
    pagination: PaginationMeta
    status: list[str] | None = None
    items: list[OrderOut]


class ItemActionOut(BaseModel):
    order_id: str
    product_id: str
    order_status: str
    message: str


class PackItemOut(ItemActionOut):
    all_packed: bool


class FulfillItemOut(ItemActionOut):
    all_fulfilled: bool
