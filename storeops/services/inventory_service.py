import logging
from dataclasses import dataclass

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeops.core.id_utils import new_id
from storeops.models.inventory import InventoryLog
from storeops.models.order import Order, OrderItem
from storeops.models.product import Product
from storeops.services.notification_service import notify_roles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkAdjustResult:
    product_id: str
    success: bool
    new_stock: int | None = None
    error: str | None = None


def add_inventory_log(
    db: Session,
    *,
    product_id: str | None,
    type: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    reason: str | None,
    user_id: str | None,
    counter: str = "stock",
    order_id: str | None = None,
) -> InventoryLog:
    entry = InventoryLog(
        id=new_id(),
        product_id=product_id,
        order_id=order_id,
        type=type,
        counter=counter,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason,
        user_id=user_id,
    )
    db.add(entry)
    return entry


def get_product_or_404(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _notify_if_low_stock(db: Session, product: Product, previous_stock: int) -> None:
    threshold = product.min_stock_threshold
    if not (previous_stock > threshold >= product.stock):
        return
    logger.info(
        "product %s (%s) crossed low-stock threshold: %d -> %d",
        product.id,
        product.sku,
        previous_stock,
        product.stock,
    )
    notify_roles(
        db,
        ["admin"],
        type="low_stock",
        title="Low Stock Alert",
        message=f"{product.name} is running low on stock ({product.stock} remaining)",
        data={
            "product_id": product.id,
            "sku": product.sku,
            "current_stock": product.stock,
            "threshold": threshold,
        },
    )


def adjust_stock(
    db: Session,
    *,
    product: Product,
    quantity: int,
    reason: str,
    user_id: str | None,
) -> InventoryLog:
    """
    Shift both counters by ``quantity`` and log the change against ``stock``.

    Raises before touching the product when either counter would go negative, so a
    failed call leaves the session unchanged.
    """
    if quantity == 0:
        raise HTTPException(status_code=400, detail="Quantity cannot be zero")
    if not reason or not reason.strip():
        raise HTTPException(status_code=400, detail="Reason is required")

    previous_stock = product.stock
    new_stock = previous_stock + quantity
    if new_stock < 0:
        raise HTTPException(status_code=400, detail="Insufficient stock")
    if product.physical_inventory + quantity < 0:
        raise HTTPException(status_code=400, detail="Insufficient physical inventory")

    product.stock = new_stock
    product.physical_inventory = product.physical_inventory + quantity

    entry = add_inventory_log(
        db,
        product_id=product.id,
        type="stock_in" if quantity > 0 else "stock_out",
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason.strip(),
        user_id=user_id,
    )
    _notify_if_low_stock(db, product, previous_stock)
    return entry


def bulk_adjust_stock(
    db: Session,
    *,
    adjustments: list[tuple[str, int, str]],
    user_id: str | None,
) -> list[BulkAdjustResult]:
    """Each entry commits on its own; a failing entry never undoes another."""
    results: list[BulkAdjustResult] = []
    for product_id, quantity, reason in adjustments:
        try:
            product = get_product_or_404(db, product_id)
            adjust_stock(db, product=product, quantity=quantity, reason=reason, user_id=user_id)
        except HTTPException as exc:
            db.rollback()
            results.append(BulkAdjustResult(product_id=product_id, success=False, error=str(exc.detail)))
            continue
        db.commit()
        results.append(BulkAdjustResult(product_id=product_id, success=True, new_stock=product.stock))
    return results


def restore_stock_for_cancellation(db: Session, *, order: Order, items: list[OrderItem]) -> int:
    """Give reserved stock back for every unfulfilled item. Physical inventory is untouched."""
    restored = 0
    for item in items:
        if item.fulfilled or not item.product_id:
            continue
        product = db.get(Product, item.product_id)
        if not product:
            continue

        previous_stock = product.stock
        product.stock = previous_stock + item.quantity
        add_inventory_log(
            db,
            product_id=product.id,
            order_id=order.id,
            type="stock_in",
            quantity=item.quantity,
            previous_stock=previous_stock,
            new_stock=product.stock,
            reason=f"Order cancellation - Order #{order.order_number}",
            user_id=None,
        )
        logger.info(
            "restored %d units of %s for cancelled order %s",
            item.quantity,
            product.sku,
            order.order_number,
        )
        restored += 1
    return restored


def list_low_stock_products(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.is_active.is_(True), Product.stock <= Product.min_stock_threshold)
            .order_by(Product.stock.asc(), Product.name.asc())
        ).scalars().all()
    )


def sync_physical_inventory(db: Session, *, user_id: str | None) -> tuple[int, int]:
    """Reset every product's physical count to its stock. Returns (updated, total)."""
    products = db.execute(select(Product)).scalars().all()
    updated = 0
    for product in products:
        if product.physical_inventory == product.stock:
            continue
        previous = product.physical_inventory
        product.physical_inventory = product.stock
        add_inventory_log(
            db,
            product_id=product.id,
            type="adjustment",
            counter="physical_inventory",
            quantity=product.stock - previous,
            previous_stock=previous,
            new_stock=product.stock,
            reason="Physical inventory sync",
            user_id=user_id,
        )
        updated += 1
    logger.info("physical inventory sync updated %d of %d products", updated, len(products))
    return updated, len(products)
