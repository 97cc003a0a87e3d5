from datetime import datetime

from pydantic import EmailStr, Field

from tenantflow.models.enums import Role
from tenantflow.schemas.common import CamelModel, Pagination, PatchModel


class UserOut(CamelModel):
    id: str
    tenant_id: str | None
    email: str
    full_name: str
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserBrief(CamelModel):
    id: str
    email: str
    full_name: str
    role: str


class UserList(CamelModel):
    users: list[UserOut]
    total: int
    pagination: Pagination


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)
    full_name: str = Field(min_length=1, max_length=255)
    role: Role = Role.USER


class UserUpdate(PatchModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    password: str | None = Field(default=None, min_length=1)
    role: Role | None = None
    is_active: bool | None = None
