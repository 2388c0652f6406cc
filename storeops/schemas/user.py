from typing import Literal

from pydantic import BaseModel

from storeops.schemas.auth import UserOut
from storeops.schemas.common import PaginationMeta

UserRole = Literal["customer", "staff", "manager", "admin"]
UserStatus = Literal["pending", "active", "suspended"]


class UserStatusUpdateIn(BaseModel):
    status: UserStatus


class UserRoleUpdateIn(BaseModel):
    role: UserRole


class UserListOut(BaseModel):
    items: list[UserOut]
    pagination: PaginationMeta


class StaffListOut(BaseModel):
    items: list[UserOut]
