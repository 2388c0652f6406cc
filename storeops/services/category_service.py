from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeops.models.category import Category


def get_category_or_404(db: Session, category_id: str) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def ensure_category_exists(db: Session, category_id: str | None) -> None:
    """Body references to a missing category are a bad request, not a 404."""
    if category_id is None:
        return
    if not db.get(Category, category_id):
        raise HTTPException(status_code=400, detail="Category not found")


def ensure_valid_parent(db: Session, *, category_id: str | None, parent_id: str | None) -> None:
    if parent_id is None:
        return
    parent = db.get(Category, parent_id)
    if not parent:
        raise HTTPException(status_code=400, detail="Parent category not found")
    if category_id is None:
        return

    # Walk up from the new parent; reaching the category itself would close a loop.
    seen: set[str] = set()
    current: Category | None = parent
    while current is not None and current.id not in seen:
        if current.id == category_id:
            raise HTTPException(status_code=400, detail="A category cannot be nested under itself")
        seen.add(current.id)
        current = db.get(Category, current.parent_id) if current.parent_id else None


def list_category_tree(db: Session) -> list[tuple[Category, list[Category]]]:
    """
    Active categories as roots with their direct children, both in display order.

    Children of an inactive parent are left out along with it.
    """
    categories = db.execute(
        select(Category)
        .where(Category.is_active.is_(True))
        .order_by(Category.sort_order.asc(), Category.name.asc())
    ).scalars().all()

    children: dict[str, list[Category]] = {category.id: [] for category in categories}
    roots: list[Category] = []
    for category in categories:
        if not category.parent_id:
            roots.append(category)
        elif category.parent_id in children:
            children[category.parent_id].append(category)
    return [(root, children[root.id]) for root in roots]


def category_with_children_ids(db: Session, category_id: str) -> list[str]:
    """The category plus its active direct children, for product filtering."""
    child_ids = db.execute(
        select(Category.id).where(Category.parent_id == category_id, Category.is_active.is_(True))
    ).scalars().all()
    return [category_id, *child_ids]
