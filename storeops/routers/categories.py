from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.id_utils import new_id
from storeops.core.permissions import require_staff
from storeops.models.category import Category
from storeops.models.product import Product
from storeops.models.user import User
from storeops.schemas.category import (
    CategoryCreate,
    CategoryListOut,
    CategoryOut,
    CategoryTreeOut,
    CategoryUpdate,
)
from storeops.schemas.common import MessageOut
from storeops.services.category_service import (
    ensure_valid_parent,
    get_category_or_404,
    list_category_tree,
)

router = APIRouter(prefix="/categories", tags=["categories"])


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        parent_id=category.parent_id,
        is_active=category.is_active,
        sort_order=category.sort_order,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


@router.get(
    "",
    response_model=CategoryListOut,
    summary="List categories",
    description="Public storefront tree of active categories with their subcategories.",
    responses=error_responses(500),
)
def list_categories(db: Session = Depends(get_db)):
    return CategoryListOut(
        items=[
            CategoryTreeOut(
                **category_out(root).model_dump(),
                children=[category_out(child) for child in children],
            )
            for root, children in list_category_tree(db)
        ]
    )


@router.post(
    "",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
    responses=error_responses(400, 401, 403, 422, 500),
)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    ensure_valid_parent(db, category_id=None, parent_id=payload.parent_id)
    category = Category(
        id=new_id(),
        name=payload.name,
        description=payload.description,
        parent_id=payload.parent_id,
        is_active=payload.is_active,
        sort_order=payload.sort_order,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return category_out(category)


@router.put(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Update category",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    category = get_category_or_404(db, category_id)
    changes = payload.model_dump(exclude_unset=True)
    if "parent_id" in changes:
        ensure_valid_parent(db, category_id=category.id, parent_id=changes["parent_id"])

    for field_name, value in changes.items():
        if value is None and field_name in {"name", "is_active", "sort_order"}:
            continue
        setattr(category, field_name, value)
    db.commit()
    db.refresh(category)
    return category_out(category)


@router.delete(
    "/{category_id}",
    response_model=MessageOut,
    summary="Delete category",
    description="Refused while the category still has subcategories or products.",
    responses=error_responses(401, 403, 404, 409, 500),
)
def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff),
):
    category = get_category_or_404(db, category_id)
    has_children = db.execute(
        select(Category.id).where(Category.parent_id == category.id).limit(1)
    ).scalar_one_or_none()
    if has_children:
        raise HTTPException(status_code=409, detail="Cannot delete category with subcategories")

    has_products = db.execute(
        select(Product.id).where(Product.category_id == category.id).limit(1)
    ).scalar_one_or_none()
    if has_products:
        raise HTTPException(status_code=409, detail="Cannot delete category with products")

    db.delete(category)
    db.commit()
    return MessageOut(message="Category deleted")
