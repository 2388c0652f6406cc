from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from storeops.db.base import Base


class Product(Base):
    """
    Catalog entry with two counters.

    ``stock`` is the sellable quantity and is reserved (decremented) when an order
    is placed. ``physical_inventory`` is the warehouse count and only drops when an
    order item is fulfilled, so the two diverge while orders are open.
    """
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=True, index=True
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    physical_inventory: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    min_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ux_products_sku_lower", func.lower(sku), unique=True),
        Index("ix_products_is_active_created_at", "is_active", "created_at"),
        Index("ix_products_category", "category"),
    )
