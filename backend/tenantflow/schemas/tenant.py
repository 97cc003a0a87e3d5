from datetime import datetime

from pydantic import Field

from tenantflow.models.enums import SubscriptionPlan, TenantStatus
from tenantflow.schemas.common import CamelModel, Pagination, PatchModel


class TenantOut(CamelModel):
    id: str
    name: str
    subdomain: str
    status: str
    subscription_plan: str
    max_users: int
    max_projects: int
    created_at: datetime
    updated_at: datetime


class TenantBrief(CamelModel):
    id: str
    name: str
    subdomain: str
    status: str
    subscription_plan: str
    max_users: int
    max_projects: int


class TenantListItem(TenantOut):
    total_users: int = 0
    total_projects: int = 0


class TenantStats(CamelModel):
    total_users: int
    total_projects: int
    total_tasks: int


class TenantDetail(TenantOut):
    stats: TenantStats


class TenantList(CamelModel):
    tenants: list[TenantListItem]
    total: int
    pagination: Pagination


class TenantUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    status: TenantStatus | None = None
    subscription_plan: SubscriptionPlan | None = None
    max_users: int | None = Field(default=None, ge=1)
    max_projects: int | None = Field(default=None, ge=1)
