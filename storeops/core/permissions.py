from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from storeops.core.security_current import get_current_user
from storeops.models.user import STAFF_ROLES, User


def require_roles(*allowed_roles: str) -> Callable[[User], User]:
    normalized_allowed = {role.strip().lower() for role in allowed_roles if role.strip()}
    if not normalized_allowed:
        raise ValueError("At least one allowed role is required")

    def dependency(user: User = Depends(get_current_user)) -> User:
        current_role = (user.role or "").lower()
        if current_role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this action",
            )
        return user

    return dependency


require_staff = require_roles(*STAFF_ROLES)
require_manager = require_roles("admin", "manager")
require_admin = require_roles("admin")


def is_staff(user: User | None) -> bool:
    return bool(user) and (user.role or "").lower() in STAFF_ROLES
