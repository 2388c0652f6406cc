from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.permissions import require_admin
from storeops.models.inventory import INVENTORY_LOG_TYPES, InventoryLog
from storeops.models.product import Product
from storeops.models.user import User
from storeops.schemas.common import PaginationMeta
from storeops.schemas.inventory import InventoryLogListOut, InventoryLogOut

router = APIRouter(prefix="/inventory", tags=["inventory"])
MAX_LOG_PAGE_SIZE = 500


@router.get(
    "/logs",
    response_model=InventoryLogListOut,
    summary="Inventory audit trail",
    description=(
        "Newest first. `days` limits to the trailing window, `product` matches product name or SKU."
    ),
    responses=error_responses(401, 403, 422, 500),
)
def list_inventory_logs(
    days: int | None = Query(default=None, ge=1, le=3650),
    log_type: str | None = Query(default=None, alias="type", description=f"One of {', '.join(INVENTORY_LOG_TYPES)}"),
    product: str | None = Query(default=None, description="Product name or SKU substring"),
    order_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=MAX_LOG_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    filters = []
    if days:
        filters.append(InventoryLog.created_at >= datetime.now(timezone.utc) - timedelta(days=days))
    if log_type:
        filters.append(InventoryLog.type == log_type.strip().lower())
    if product and product.strip():
        pattern = f"%{product.strip().lower()}%"
        filters.append(or_(func.lower(Product.name).like(pattern), func.lower(Product.sku).like(pattern)))
    if order_id:
        filters.append(InventoryLog.order_id == order_id)

    base = (
        select(InventoryLog, Product.name, Product.sku, User.email)
        .outerjoin(Product, Product.id == InventoryLog.product_id)
        .outerjoin(User, User.id == InventoryLog.user_id)
        .where(*filters)
    )
    total = int(db.execute(select(func.count()).select_from(base.subquery())).scalar_one())
    rows = db.execute(
        base.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc()).offset(offset).limit(limit)
    ).all()

    items = [
        InventoryLogOut(
            id=log.id,
            product_id=log.product_id,
            product_name=product_name,
            product_sku=product_sku,
            order_id=log.order_id,
            type=log.type,
            counter=log.counter,
            quantity=log.quantity,
            previous_stock=log.previous_stock,
            new_stock=log.new_stock,
            reason=log.reason,
            user_id=log.user_id,
            user_email=user_email,
            created_at=log.created_at,
        )
        for log, product_name, product_sku, user_email in rows
    ]
    return InventoryLogListOut(
        items=items,
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(items)),
    )
