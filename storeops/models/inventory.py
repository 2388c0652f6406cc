from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from storeops.db.base import Base

INVENTORY_LOG_TYPES = ("stock_in", "stock_out", "adjustment", "fulfillment", "packing")


class InventoryLog(Base):
    """
    Append-only audit row, one per counter change.

    ``quantity`` is the signed delta applied to ``counter`` ("stock" or
    "physical_inventory"); ``previous_stock``/``new_stock`` are that counter's
    values around the change.
    """
    __tablename__ = "inventory_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=True, index=True
    )
    order_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("orders.id"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    counter: Mapped[str] = mapped_column(String(30), nullable=False, default="stock", server_default="stock")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_inventory_logs_created_at", "created_at"),
        Index("ix_inventory_logs_type_created_at", "type", "created_at"),
        Index("ix_inventory_logs_product_created_at", "product_id", "created_at"),
    )
