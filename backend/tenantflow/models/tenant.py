from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tenantflow.db import Base
from tenantflow.models.base import IdMixin, TimestampMixin
from tenantflow.models.enums import PLAN_LIMITS, SubscriptionPlan, TenantStatus


class Tenant(IdMixin, TimestampMixin, Base):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TenantStatus.ACTIVE.value, nullable=False)
    subscription_plan: Mapped[str] = mapped_column(String(20), default=SubscriptionPlan.FREE.value, nullable=False)
    max_users: Mapped[int] = mapped_column(Integer, default=PLAN_LIMITS[SubscriptionPlan.FREE][0], nullable=False)
    max_projects: Mapped[int] = mapped_column(Integer, default=PLAN_LIMITS[SubscriptionPlan.FREE][1], nullable=False)
