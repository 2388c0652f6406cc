from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storeops.core.api_docs import error_responses
from storeops.core.deps import get_db
from storeops.core.security_current import get_current_user
from storeops.models.notification import Notification
from storeops.models.user import User
from storeops.schemas.common import MessageOut
from storeops.schemas.notification import NotificationListOut, NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_out(notification: Notification) -> NotificationOut:
    return NotificationOut(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        data=notification.data,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


def _get_own_notification(db: Session, notification_id: str, user: User) -> Notification:
    notification = db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    ).scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get(
    "",
    response_model=NotificationListOut,
    summary="List my notifications",
    responses=error_responses(401, 422, 500),
)
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters = [Notification.user_id == user.id]
    if unread_only:
        filters.append(Notification.is_read.is_(False))
    notifications = db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    ).scalars().all()
    unread_count = int(
        db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.id,
                Notification.is_read.is_(False),
            )
        ).scalar_one()
    )
    return NotificationListOut(
        items=[_notification_out(notification) for notification in notifications],
        unread_count=unread_count,
    )


@router.put(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="Mark notification as read",
    responses=error_responses(401, 404, 500),
)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = _get_own_notification(db, notification_id, user)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return _notification_out(notification)


@router.delete(
    "/{notification_id}",
    response_model=MessageOut,
    summary="Delete notification",
    responses=error_responses(401, 404, 500),
)
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = _get_own_notification(db, notification_id, user)
    db.delete(notification)
    db.commit()
    return MessageOut(message="Notification deleted")
