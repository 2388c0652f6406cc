import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storeops.core.id_utils import new_id
from storeops.models.notification import Notification
from storeops.models.user import User

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    notification = Notification(
        id=new_id(),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data,
    )
    db.add(notification)
    return notification


def notify_roles(
    db: Session,
    roles: Iterable[str],
    *,
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> int:
    recipients = db.execute(
        select(User.id).where(User.role.in_(list(roles)), User.status == "active")
    ).scalars().all()
    for user_id in recipients:
        create_notification(db, user_id=user_id, type=type, title=title, message=message, data=data)
    if recipients:
        logger.info("notification %s queued for %d users", type, len(recipients))
    return len(recipients)
