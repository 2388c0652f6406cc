import logging
from dataclasses import dataclass
from datetime import date

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeops.core.config import settings
from storeops.core.id_utils import new_id
from storeops.core.money import ZERO_MONEY, line_subtotal, to_money
from storeops.models.order import Order, OrderItem
from storeops.models.product import Product
from storeops.models.user import STAFF_ROLES, User
from storeops.schemas.order import OrderCreate
from storeops.services.inventory_service import (
    add_inventory_log,
    get_product_or_404,
    restore_stock_for_cancellation,
)
from storeops.services.notification_service import create_notification, notify_roles
from storeops.services.order_numbers import next_order_number

logger = logging.getLogger(__name__)

ALLOWED_ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}
WORKABLE_ORDER_STATUSES = {"pending", "processing"}

STATUS_MESSAGES = {
    "pending": "Your order is pending confirmation",
    "processing": "Your order is being processed",
    "shipped": "Your order has been shipped",
    "delivered": "Your order has been delivered",
    "cancelled": "Your order has been cancelled",
}


@dataclass(frozen=True)
class ItemActionResult:
    order: Order
    item: OrderItem
    all_items_done: bool


def get_order_items(db: Session, order_id: str) -> list[OrderItem]:
    return list(
        db.execute(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.line_no, OrderItem.id)
        ).scalars().all()
    )


def get_order_or_404(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def ensure_transition_allowed(current_status: str, next_status: str) -> None:
    if current_status == next_status:
        return
    allowed_next = ALLOWED_ORDER_TRANSITIONS.get(current_status, set())
    if next_status not in allowed_next:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot transition order from '{current_status}' to '{next_status}'",
        )


def _check_stock(db: Session, payload: OrderCreate) -> dict[str, Product]:
    """All-or-nothing availability check. Raises 400 listing every shortfall."""
    requested: dict[str, int] = {}
    first_index: dict[str, int] = {}
    for index, item in enumerate(payload.items):
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        first_index.setdefault(item.product_id, index)

    products: dict[str, Product] = {}
    shortfalls: list[dict] = []
    for product_id, quantity in requested.items():
        field = f"items.{first_index[product_id]}"
        product = db.get(Product, product_id)
        if not product or not product.is_active:
            shortfalls.append(
                {
                    "field": f"{field}.product_id",
                    "message": f"Product with ID {product_id} not found",
                    "type": "product_not_found",
                }
            )
            continue
        if product.stock < quantity:
            shortfalls.append(
                {
                    "field": f"{field}.quantity",
                    "message": (
                        f"Insufficient stock for {product.name} ({product.sku}). "
                        f"Available: {product.stock}, Requested: {quantity}"
                    ),
                    "type": "insufficient_stock",
                }
            )
            continue
        products[product_id] = product

    if shortfalls:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Order cannot be processed due to stock issues",
                "details": shortfalls,
            },
        )
    return products


def _insert_order(
    db: Session,
    *,
    payload: OrderCreate,
    customer: User | None,
    today: date | None,
) -> Order:
    products = _check_stock(db, payload)
    details = payload.order

    order = Order(
        id=new_id(),
        order_number=next_order_number(db, today=today),
        customer_id=customer.id if customer else None,
        customer_name=details.customer_name,
        customer_email=str(details.customer_email).lower(),
        customer_phone=details.customer_phone,
        shipping_address=details.shipping_address,
        payment_method=details.payment_method,
        notes=details.notes,
        status="pending",
        total=ZERO_MONEY,
    )
    db.add(order)
    # Surfaces an order number collision before any line is written.
    db.flush()

    total = ZERO_MONEY
    for line_no, item in enumerate(payload.items, start=1):
        product = products[item.product_id]
        unit_price = to_money(product.price)
        subtotal = line_subtotal(unit_price, item.quantity)
        total += subtotal
        db.add(
            OrderItem(
                id=new_id(),
                order_id=order.id,
                line_no=line_no,
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                product_price=unit_price,
                quantity=item.quantity,
                subtotal=subtotal,
                fulfilled=False,
            )
        )
        # Reserve sellable stock now; physical inventory waits for fulfillment.
        product.stock = product.stock - item.quantity

    order.total = to_money(total)
    db.flush()
    return order


def place_order(
    db: Session,
    *,
    payload: OrderCreate,
    customer: User | None,
    today: date | None = None,
) -> Order:
    """
    Validate, reserve stock and persist a new order, then commit.

    A lost race on the order number surfaces as an IntegrityError on the unique
    constraint; the whole insert is retried with a fresh number.
    """
    attempts = settings.order_number_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            order = _insert_order(db, payload=payload, customer=customer, today=today)
            notify_roles(
                db,
                STAFF_ROLES,
                type="new_order",
                title="New Order Received",
                message=f"Order #{order.order_number} from {order.customer_name} (${order.total})",
                data={"order_id": order.id, "order_number": order.order_number, "total": float(order.total)},
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("order number collision on attempt %d/%d", attempt, attempts)
            continue
        db.refresh(order)
        logger.info("order %s placed with total %s", order.order_number, order.total)
        return order

    raise HTTPException(status_code=409, detail="Could not allocate an order number, please retry")


def update_order_status(db: Session, *, order: Order, next_status: str) -> Order:
    current_status = order.status
    ensure_transition_allowed(current_status, next_status)
    if current_status == next_status:
        return order

    if next_status == "cancelled":
        restore_stock_for_cancellation(db, order=order, items=get_order_items(db, order.id))

    order.status = next_status
    if order.customer_id:
        create_notification(
            db,
            user_id=order.customer_id,
            type="order_status_update",
            title=f"Order {order.order_number} Update",
            message=STATUS_MESSAGES.get(next_status, f"Your order status has been updated to {next_status}"),
            data={
                "order_id": order.id,
                "order_number": order.order_number,
                "status": next_status,
                "total": float(order.total),
            },
        )
    logger.info("order %s moved %s -> %s", order.order_number, current_status, next_status)
    return order


def _find_open_item(items: list[OrderItem], product_id: str, *, verb: str) -> OrderItem:
    matching = [item for item in items if item.product_id == product_id]
    if not matching:
        raise HTTPException(status_code=400, detail="Product is not part of this order")
    for item in matching:
        if not item.fulfilled:
            return item
    raise HTTPException(status_code=400, detail=f"This order item has already been {verb}")


def _ensure_workable(order: Order, *, verb: str) -> None:
    if order.status not in WORKABLE_ORDER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Order cannot be {verb} in its current status",
        )


def pack_item(db: Session, *, order: Order, product_id: str, user_id: str | None) -> ItemActionResult:
    """Mark an item packed (fulfilled flag) without touching either counter."""
    _ensure_workable(order, verb="packed")
    product = get_product_or_404(db, product_id)
    items = get_order_items(db, order.id)
    item = _find_open_item(items, product_id, verb="packed")

    item.fulfilled = True
    add_inventory_log(
        db,
        product_id=product.id,
        order_id=order.id,
        type="packing",
        quantity=0,
        previous_stock=product.stock,
        new_stock=product.stock,
        reason=f"Order item packed - Order #{order.order_number}",
        user_id=user_id,
    )

    all_packed = all(entry.fulfilled for entry in items)
    if all_packed:
        order.status = "processing"
    return ItemActionResult(order=order, item=item, all_items_done=all_packed)


def fulfill_item(
    db: Session,
    *,
    order: Order,
    product_id: str,
    quantity: int,
    user_id: str | None,
) -> ItemActionResult:
    """Mark an item fulfilled and take ``quantity`` off the physical count."""
    if quantity <= 0:
        raise HTTPException(status_code=400, detail="Quantity must be positive")
    _ensure_workable(order, verb="fulfilled")
    product = get_product_or_404(db, product_id)
    items = get_order_items(db, order.id)
    item = _find_open_item(items, product_id, verb="fulfilled")

    if quantity > item.quantity:
        raise HTTPException(status_code=400, detail=f"Order only requires {item.quantity} units")
    if product.physical_inventory < quantity:
        raise HTTPException(status_code=400, detail="Insufficient physical inventory available")

    previous_physical = product.physical_inventory
    product.physical_inventory = previous_physical - quantity
    item.fulfilled = True
    add_inventory_log(
        db,
        product_id=product.id,
        order_id=order.id,
        type="fulfillment",
        counter="physical_inventory",
        quantity=-quantity,
        previous_stock=previous_physical,
        new_stock=product.physical_inventory,
        reason=f"Order fulfillment - Order #{order.order_number}",
        user_id=user_id,
    )

    all_fulfilled = all(entry.fulfilled for entry in items)
    if all_fulfilled:
        order.status = "shipped"
    return ItemActionResult(order=order, item=item, all_items_done=all_fulfilled)


def assign_order(db: Session, *, order: Order, assignee_id: str) -> Order:
    assignee = db.get(User, assignee_id)
    if not assignee or assignee.status != "active":
        raise HTTPException(status_code=404, detail="Assignee not found")
    if assignee.role not in STAFF_ROLES:
        raise HTTPException(status_code=400, detail="Orders can only be assigned to staff members")
    order.assigned_user_id = assignee.id
    return order
