from datetime import datetime

from pydantic import BaseModel

from storeops.schemas.common import PaginationMeta


class InventoryLogOut(BaseModel):
    id: str
    product_id: str | None = None
    product_name: str | None = None
    product_sku: str | None = None
    order_id: str | None = None
    type: str
    counter: str
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str | None = None
    user_id: str | None = None
    user_email: str | None = None
    created_at: datetime | None = None


class InventoryLogListOut(BaseModel):
    items: list[InventoryLogOut]
    pagination: PaginationMeta
