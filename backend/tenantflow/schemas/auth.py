from pydantic import EmailStr, Field

from tenantflow.schemas.common import CamelModel
from tenantflow.schemas.tenant import TenantBrief
from tenantflow.schemas.user import UserBrief


class RegisterTenantIn(CamelModel):
    tenant_name: str = Field(min_length=1, max_length=255)
    subdomain: str = Field(min_length=1, max_length=63)
    admin_email: EmailStr
    admin_password: str = Field(min_length=1)
    admin_full_name: str = Field(min_length=1, max_length=255)


class RegisterTenantOut(CamelModel):
    tenant_id: str
    subdomain: str
    admin_user: UserBrief


class LoginIn(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    tenant_subdomain: str | None = None
    tenant_id: str | None = None


class LoginUser(CamelModel):
    id: str
    email: str
    full_name: str
    role: str
    tenant_id: str | None


class LoginOut(CamelModel):
    user: LoginUser
    token: str
    expires_in: int
    tenant: TenantBrief | None = None


class MeOut(CamelModel):
    id: str
    email: str
    full_name: str
    role: str
    is_active: bool
    tenant: TenantBrief | None = None
