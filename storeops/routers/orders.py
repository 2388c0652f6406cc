from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.permissions import require_manager, require_staff
from storeops.core.security_current import get_current_user, get_optional_user
from storeops.models.order import Order, OrderItem
from storeops.models.user import User
from storeops.schemas.common import PaginationMeta
from storeops.schemas.order import (
    ALLOWED_ORDER_STATUSES,
    FulfillItemIn,
    FulfillItemOut,
    OrderAssignIn,
    OrderCreate,
    OrderDetailOut,
    OrderItemOut,
    OrderListOut,
    OrderOut,
    OrderStatusUpdateIn,
    PackItemIn,
    PackItemOut,
)
from storeops.services.order_service import (
    ItemActionResult,
    assign_order,
    fulfill_item,
    get_order_items,
    get_order_or_404,
    pack_item,
    place_order,
    update_order_status,
)

router = APIRouter(prefix="/orders", tags=["orders"])
MAX_ORDER_PAGE_SIZE = 200


def _parse_status_filter(status_value: str | None) -> list[str]:
    if not status_value:
        return []
    statuses = [part.strip().lower() for part in status_value.split(",") if part.strip()]
    invalid = [value for value in statuses if value not in ALLOWED_ORDER_STATUSES]
    if invalid:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status filter: {', '.join(invalid)}",
        )
    return list(dict.fromkeys(statuses))


def order_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_address=order.shipping_address,
        total=float(order.total),
        status=order.status,
        payment_method=order.payment_method,
        assigned_user_id=order.assigned_user_id,
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _item_out(item: OrderItem) -> OrderItemOut:
    return OrderItemOut(
        id=item.id,
        line_no=item.line_no,
        product_id=item.product_id,
        product_name=item.product_name,
        product_sku=item.product_sku,
        product_price=float(item.product_price),
        quantity=item.quantity,
        subtotal=float(item.subtotal),
        fulfilled=item.fulfilled,
    )


def order_detail_out(db: Session, order: Order) -> OrderDetailOut:
    return OrderDetailOut(
        **order_out(order).model_dump(),
        items=[_item_out(item) for item in get_order_items(db, order.id)],
    )


def _item_action_message(result: ItemActionResult, *, verb: str) -> str:
    if result.all_items_done:
        return f"All items {verb}. Order is now {result.order.status}"
    return f"Item {verb}"


@router.post(
    "",
    response_model=OrderDetailOut,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description=(
        "Storefront checkout. Anonymous callers are allowed; a signed-in customer is attached "
        "to the order. Stock for every line is reserved together or the whole order is rejected."
    ),
    responses=error_responses(400, 401, 409, 422, 500),
)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    customer = user if user and user.role == "customer" else None
    order = place_order(db, payload=payload, customer=customer)
    return order_detail_out(db, order)


@router.get(
    "",
    response_model=OrderListOut,
    summary="List orders",
    description=(
        "Customers see their own orders, staff see orders assigned to them, managers and "
        "admins see everything. `status` accepts a comma-separated list."
    ),
    responses=error_responses(400, 401, 422, 500),
)
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=MAX_ORDER_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    statuses = _parse_status_filter(status_filter)
    filters = []
    if user.role == "customer":
        filters.append(Order.customer_id == user.id)
    elif user.role == "staff":
        filters.append(Order.assigned_user_id == user.id)
    if statuses:
        filters.append(Order.status.in_(statuses))

    total = int(db.execute(select(func.count(Order.id)).where(*filters)).scalar_one())
    orders = db.execute(
        select(Order)
        .where(*filters)
        # Longer suffixes are larger numbers within the same day prefix.
        .order_by(
            Order.created_at.desc(),
            func.length(Order.order_number).desc(),
            Order.order_number.desc(),
        )
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return OrderListOut(
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(orders)),
        status=statuses or None,
        items=[order_out(order) for order in orders],
    )


@router.get(
    "/track",
    response_model=OrderDetailOut,
    summary="Track an order",
    description="Public lookup by order number plus the email used at checkout.",
    responses=error_responses(404, 422, 500),
)
def track_order(
    order_number: str = Query(min_length=1),
    email: str = Query(min_length=3),
    db: Session = Depends(get_db),
):
    order = db.execute(
        select(Order).where(
            Order.order_number == order_number.strip(),
            func.lower(Order.customer_email) == email.strip().lower(),
        )
    ).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_detail_out(db, order)


@router.get(
    "/{order_id}",
    response_model=OrderDetailOut,
    summary="Get order with items",
    responses=error_responses(401, 403, 404, 500),
)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = get_order_or_404(db, order_id)
    if user.role == "customer" and order.customer_id != user.id:
        raise HTTPException(status_code=403, detail="Not allowed to view this order")
    return order_detail_out(db, order)


@router.put(
    "/{order_id}/status",
    response_model=OrderOut,
    summary="Update order status",
    description=(
        "Allowed moves: pending to processing or cancelled, processing to shipped or cancelled, "
        "shipped to delivered. Cancelling returns reserved stock for unfulfilled items."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def change_order_status(
    order_id: str,
    payload: OrderStatusUpdateIn,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    order = get_order_or_404(db, order_id)
    update_order_status(db, order=order, next_status=payload.status)
    db.commit()
    db.refresh(order)
    return order_out(order)


@router.put(
    "/{order_id}/assign",
    response_model=OrderOut,
    summary="Assign order to a staff member",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def assign(
    order_id: str,
    payload: OrderAssignIn,
    db: Session = Depends(get_db),
    _user: User = Depends(require_manager),
):
    order = get_order_or_404(db, order_id)
    assign_order(db, order=order, assignee_id=payload.assigned_user_id)
    db.commit()
    db.refresh(order)
    return order_out(order)


@router.post(
    "/{order_id}/pack-item",
    response_model=PackItemOut,
    summary="Pack an order item",
    description="Marks the item packed. Once every item is packed the order moves to processing.",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def pack_order_item(
    order_id: str,
    payload: PackItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    order = get_order_or_404(db, order_id)
    result = pack_item(db, order=order, product_id=payload.product_id, user_id=user.id)
    db.commit()
    db.refresh(order)
    return PackItemOut(
        order_id=order.id,
        product_id=result.item.product_id,
        order_status=order.status,
        all_packed=result.all_items_done,
        message=_item_action_message(result, verb="packed"),
    )


@router.post(
    "/{order_id}/fulfill-item",
    response_model=FulfillItemOut,
    summary="Fulfill an order item",
    description=(
        "Marks the item fulfilled and deducts physical inventory. Once every item is fulfilled "
        "the order moves to shipped."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def fulfill_order_item(
    order_id: str,
    payload: FulfillItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    order = get_order_or_404(db, order_id)
    result = fulfill_item(
        db,
        order=order,
        product_id=payload.product_id,
        quantity=payload.quantity,
        user_id=user.id,
    )
    db.commit()
    db.refresh(order)
    return FulfillItemOut(
        order_id=order.id,
        product_id=result.item.product_id,
        order_status=order.status,
        all_fulfilled=result.all_items_done,
        message=_item_action_message(result, verb="fulfilled"),
    )
