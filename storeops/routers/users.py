from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.permissions import require_admin, require_manager
from storeops.models.user import STAFF_ROLES, USER_ROLES, USER_STATUSES, User
from storeops.routers.auth import user_out
from storeops.schemas.auth import UserOut
from storeops.schemas.common import PaginationMeta
from storeops.schemas.user import StaffListOut, UserListOut, UserRoleUpdateIn, UserStatusUpdateIn

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "",
    response_model=UserListOut,
    summary="List users",
    responses=error_responses(400, 401, 403, 422, 500),
)
def list_users(
    status: str | None = Query(default=None, description="Filter by account status"),
    role: str | None = Query(default=None, description="Filter by role"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    filters = []
    if status:
        normalized_status = status.strip().lower()
        if normalized_status not in USER_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status filter: {status}")
        filters.append(User.status == normalized_status)
    if role:
        normalized_role = role.strip().lower()
        if normalized_role not in USER_ROLES:
            raise HTTPException(status_code=400, detail=f"Invalid role filter: {role}")
        filters.append(User.role == normalized_role)

    total = int(db.execute(select(func.count(User.id)).where(*filters)).scalar_one())
    users = db.execute(
        select(User).where(*filters).order_by(User.created_at.desc(), User.email).offset(offset).limit(limit)
    ).scalars().all()
    return UserListOut(
        items=[user_out(user) for user in users],
        pagination=PaginationMeta.build(total=total, limit=limit, offset=offset, count=len(users)),
    )


@router.get(
    "/staff",
    response_model=StaffListOut,
    summary="List active staff",
    description="Active staff, managers and admins. Used to pick an order assignee.",
    responses=error_responses(401, 403, 500),
)
def list_staff(
    db: Session = Depends(get_db),
    _manager: User = Depends(require_manager),
):
    staff = db.execute(
        select(User)
        .where(User.role.in_(STAFF_ROLES), User.status == "active")
        .order_by(User.first_name, User.last_name, User.email)
    ).scalars().all()
    return StaffListOut(items=[user_out(user) for user in staff])


@router.put(
    "/{user_id}/status",
    response_model=UserOut,
    summary="Approve, suspend or reactivate a user",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def update_user_status(
    user_id: str,
    payload: UserStatusUpdateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id and payload.status != "active":
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user.status = payload.status
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.put(
    "/{user_id}/role",
    response_model=UserOut,
    summary="Change a user's role",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def update_user_role(
    user_id: str,
    payload: UserRoleUpdateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id and payload.role != "admin":
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
    user.role = payload.role
    db.commit()
    db.refresh(user)
    return user_out(user)
