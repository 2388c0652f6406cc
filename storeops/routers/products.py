from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.config import settings
from storeops.core.deps import get_db
from storeops.core.id_utils import new_id
from storeops.core.permissions import is_staff, require_admin, require_staff
from storeops.core.security_current import get_optional_user
from storeops.models.inventory import InventoryLog
from storeops.models.order import Order, OrderItem
from storeops.models.product import Product
from storeops.models.user import User
from storeops.schemas.common import MessageOut, PaginationMeta
from storeops.schemas.product import (
    BulkStockAdjustIn,
    BulkStockAdjustOut,
    BulkStockAdjustResultOut,
    LowStockListOut,
    LowStockProductOut,
    PhysicalInventorySyncOut,
    ProductCreate,
    ProductListOut,
    ProductOut,
    ProductUpdate,
    StockAdjustIn,
    StockAdjustOut,
    StockStatusFilter,
)
from storeops.services.category_service import category_with_children_ids, ensure_category_exists
from storeops.services.inventory_service import (
    add_inventory_log,
    adjust_stock,
    bulk_adjust_stock,
    get_product_or_404,
    list_low_stock_products,
    sync_physical_inventory,
)

router = APIRouter(prefix="/products", tags=["products"])
MAX_PRODUCT_PAGE_SIZE = 200
OPEN_ORDER_STATUSES = ("pending", "processing")


def product_out(product: Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        category=product.category,
        category_id=product.category_id,
        price=float(product.price),
        stock=product.stock,
        physical_inventory=product.physical_inventory,
        min_stock_threshold=product.min_stock_threshold,
        is_active=product.is_active,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _sku_taken(db: Session, sku: str) -> bool:
    found = db.execute(
        select(Product.id).where(func.lower(Product.sku) == sku.lower())
    ).scalar_one_or_none()
    return found is not None


@router.get(
    "",
    response_model=ProductListOut,
    summary="List products",
    description=(
        "Public storefront listing of active products. Staff may pass `include_inactive=true`. "
        "`status` narrows to low_stock, out_of_stock or in_stock."
    ),
    responses={
        200: {
            "description": "Paginated products",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "product-id",
                                "sku": "MUG-BLU",
                                "name": "Blue Mug",
                                "category": "kitchen",
                                "price": 12.5,
                                "stock": 38,
                                "physical_inventory": 40,
                                "min_stock_threshold": 5,
                                "is_active": True,
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(401, 422, 500),
    },
)
def list_products(
    search: str | None = Query(default=None, description="Match name, description, SKU or category"),
    category: str | None = Query(default=None),
    category_id: str | None = Query(default=None, description="Category id; direct subcategories are included"),
    stock_status: StockStatusFilter | None = Query(default=None, alias="status"),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=MAX_PRODUCT_PAGE_SIZE, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    filters = []
    if not (include_inactive and is_staff(user)):
        filters.append(Product.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(func.coalesce(Product.description, "")).like(pattern),
                func.lower(Product.sku).like(pattern),
                func.lower(func.coalesce(Product.category, "")).like(pattern),
            )
        )
    if category and category.strip():
        filters.append(func.lower(Product.category) == category.strip().lower())
    if category_id:
        filters.append(Product.category_id.in_(category_with_children_ids(db, category_id)))
    if stock_status == "out_of_stock":
        filters.append(Product.stock <= 0)
    elif stock_status == "low_stock":
        filters.append(Product.stock > 0)
        filters.append(Product.stock <= Product.min_stock_threshold)
    elif stock_status == "in_stock":
        filters.append(Product.stock > Product.min_stock_threshold)

    total = int(db.execute(select(func.count(Product.id)).where(*filters)).scalar_one())
    products = db.execute(
        select(Product)
        .where(*filters)
        .order_by(Product.created_at.desc(), Product.name.asc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return ProductListOut(
        items=[product_out(product) for product in products],
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(products)),
    )


@router.get(
    "/low-stock",
    response_model=LowStockListOut,
    summary="Low stock products",
    description="Active products at or below their threshold, lowest stock first.",
    responses=error_responses(401, 403, 500),
)
def low_stock_products(
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    return LowStockListOut(
        items=[
            LowStockProductOut(
                id=product.id,
                sku=product.sku,
                name=product.name,
                category=product.category,
                stock=product.stock,
                physical_inventory=product.physical_inventory,
                min_stock_threshold=product.min_stock_threshold,
            )
            for product in list_low_stock_products(db)
        ]
    )


@router.get(
    "/by-sku/{sku}",
    response_model=ProductOut,
    summary="Scanner lookup by SKU",
    responses=error_responses(401, 403, 404, 500),
)
def get_product_by_sku(
    sku: str,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    product = db.execute(
        select(Product).where(func.lower(Product.sku) == sku.strip().lower())
    ).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product_out(product)


@router.post(
    "/bulk-adjust-stock",
    response_model=BulkStockAdjustOut,
    summary="Adjust stock for many products",
    description="Entries are applied independently; the response reports each outcome.",
    responses=error_responses(401, 403, 422, 500),
)
def bulk_adjust(
    payload: BulkStockAdjustIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    results = bulk_adjust_stock(
        db,
        adjustments=[(entry.product_id, entry.quantity, entry.reason) for entry in payload.adjustments],
        user_id=user.id,
    )
    succeeded = sum(1 for result in results if result.success)
    return BulkStockAdjustOut(
        results=[
            BulkStockAdjustResultOut(
                product_id=result.product_id,
                success=result.success,
                new_stock=result.new_stock,
                error=result.error,
            )
            for result in results
        ],
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.post(
    "/sync-physical-inventory",
    response_model=PhysicalInventorySyncOut,
    summary="Reset physical inventory to stock",
    responses=error_responses(401, 403, 500),
)
def sync_physical(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    updated, total = sync_physical_inventory(db, user_id=admin.id)
    db.commit()
    return PhysicalInventorySyncOut(updated=updated, total_products=total)


@router.post(
    "",
    response_model=ProductOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
    responses=error_responses(400, 401, 403, 409, 422, 500),
)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    if _sku_taken(db, payload.sku):
        raise HTTPException(status_code=409, detail="SKU already exists")
    ensure_category_exists(db, payload.category_id)

    product = Product(
        id=new_id(),
        sku=payload.sku,
        name=payload.name,
        description=payload.description,
        category=payload.category,
        category_id=payload.category_id,
        price=payload.price,
        stock=payload.stock,
        physical_inventory=payload.stock,
        min_stock_threshold=(
            payload.min_stock_threshold
            if payload.min_stock_threshold is not None
            else settings.low_stock_default_threshold
        ),
        is_active=payload.is_active,
    )
    db.add(product)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="SKU already exists") from exc

    if payload.stock > 0:
        add_inventory_log(
            db,
            product_id=product.id,
            type="stock_in",
            quantity=payload.stock,
            previous_stock=0,
            new_stock=payload.stock,
            reason="Initial stock",
            user_id=user.id,
        )
    db.commit()
    db.refresh(product)
    return product_out(product)


@router.get(
    "/{product_id}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(404, 500),
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    product = db.get(Product, product_id)
    if not product or (not product.is_active and not is_staff(user)):
        raise HTTPException(status_code=404, detail="Product not found")
    return product_out(product)


@router.put(
    "/{product_id}",
    response_model=ProductOut,
    summary="Update product details",
    description="Stock counters are not editable here; use the stock adjustment endpoints.",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    product = get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_unset=True)
    if "category_id" in changes:
        ensure_category_exists(db, changes["category_id"])
    for field_name, value in changes.items():
        if value is None and field_name in {"name", "price", "min_stock_threshold", "is_active"}:
            continue
        setattr(product, field_name, value)
    db.commit()
    db.refresh(product)
    return product_out(product)


@router.delete(
    "/{product_id}",
    response_model=MessageOut,
    summary="Delete product",
    description="Refused while pending or processing orders still reference the product.",
    responses=error_responses(401, 403, 404, 409, 500),
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    product = get_product_or_404(db, product_id)
    open_reference = db.execute(
        select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(OrderItem.product_id == product.id, Order.status.in_(OPEN_ORDER_STATUSES))
        .limit(1)
    ).scalar_one_or_none()
    if open_reference:
        raise HTTPException(
            status_code=409,
            detail="Product is referenced by open orders and cannot be deleted",
        )

    db.execute(update(OrderItem).where(OrderItem.product_id == product.id).values(product_id=None))
    db.execute(update(InventoryLog).where(InventoryLog.product_id == product.id).values(product_id=None))
    db.delete(product)
    db.commit()
    return MessageOut(message="Product deleted")


@router.post(
    "/{product_id}/adjust-stock",
    response_model=StockAdjustOut,
    summary="Adjust product stock",
    description="Positive quantities add stock, negative remove it. Both counters shift together.",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def adjust_product_stock(
    product_id: str,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    product = get_product_or_404(db, product_id)
    entry = adjust_stock(
        db,
        product=product,
        quantity=payload.quantity,
        reason=payload.reason,
        user_id=user.id,
    )
    db.commit()
    db.refresh(product)
    return StockAdjustOut(
        product_id=product.id,
        previous_stock=entry.previous_stock,
        new_stock=product.stock,
        physical_inventory=product.physical_inventory,
    )
