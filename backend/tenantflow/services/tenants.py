import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal, ensure_tenant_access, get_or_404, require_roles
from tenantflow.core.errors import AuthorizationError
from tenantflow.core.pagination import count_rows, page_params, pagination_meta
from tenantflow.models.enums import PLAN_LIMITS, Role, SubscriptionPlan, TenantStatus
from tenantflow.models.project import Project
from tenantflow.models.task import Task
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User
from tenantflow.schemas.auth import RegisterTenantIn
from tenantflow.schemas.tenant import TenantUpdate
from tenantflow.services import audit
from tenantflow.services.auth import register_tenant

logger = logging.getLogger(__name__)

SUPER_ADMIN_FIELDS = frozenset({"status", "subscription_plan", "max_users", "max_projects"})

# super admins never count as tenant members, matching the plan-limit count
TENANT_MEMBER = User.role != Role.SUPER_ADMIN.value


def _counts_by_tenant(db: Session, column, tenant_ids: list[str], *where) -> dict[str, int]:
    if not tenant_ids:
        return {}
    stmt = select(column, func.count()).where(column.in_(tenant_ids), *where).group_by(column)
    rows = db.execute(stmt).all()
    return {tid: int(n) for tid, n in rows}


def list_tenants(
    db: Session,
    principal: Principal,
    *,
    status: TenantStatus | None = None,
    subscription_plan: SubscriptionPlan | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    require_roles(principal, Role.SUPER_ADMIN)
    params = page_params(page, limit, default_limit=10)

    stmt = select(Tenant)
    if status:
        stmt = stmt.where(Tenant.status == TenantStatus(status).value)
    if subscription_plan:
        stmt = stmt.where(Tenant.subscription_plan == SubscriptionPlan(subscription_plan).value)

    total = count_rows(db, stmt)
    tenants = db.scalars(stmt.order_by(Tenant.created_at.desc()).limit(params.limit).offset(params.offset)).all()

    ids = [t.id for t in tenants]
    users = _counts_by_tenant(db, User.tenant_id, ids, TENANT_MEMBER)
    projects = _counts_by_tenant(db, Project.tenant_id, ids)
    items = [
        {
            **{col: getattr(t, col) for col in Tenant.__table__.columns.keys()},
            "total_users": users.get(t.id, 0),
            "total_projects": projects.get(t.id, 0),
        }
        for t in tenants
    ]
    return {"tenants": items, "total": total, "pagination": pagination_meta(total, params)}


def tenant_stats(db: Session, tenant_id: str) -> dict:
    def _count(model, *where) -> int:
        stmt = select(func.count()).select_from(model).where(model.tenant_id == tenant_id, *where)
        return int(db.scalar(stmt) or 0)

    return {
        "total_users": _count(User, TENANT_MEMBER),
        "total_projects": _count(Project),
        "total_tasks": _count(Task),
    }


def get_tenant(db: Session, principal: Principal, tenant_id: str) -> dict:
    tenant = get_or_404(db, Tenant, tenant_id, "Tenant")
    ensure_tenant_access(principal, tenant.id)
    return {
        **{col: getattr(tenant, col) for col in Tenant.__table__.columns.keys()},
        "stats": tenant_stats(db, tenant.id),
    }


def create_tenant(db: Session, principal: Principal, payload: RegisterTenantIn, ip_address: str | None = None) -> dict:
    """Super-admin provisioning; goes through the same atomic registration flow."""
    require_roles(principal, Role.SUPER_ADMIN)
    return register_tenant(
        db,
        tenant_name=payload.tenant_name,
        subdomain=payload.subdomain,
        admin_email=payload.admin_email,
        admin_password=payload.admin_password,
        admin_full_name=payload.admin_full_name,
        ip_address=ip_address,
    )


def update_tenant(
    db: Session,
    principal: Principal,
    tenant_id: str,
    patch: TenantUpdate,
    ip_address: str | None = None,
) -> Tenant:
    tenant = get_or_404(db, Tenant, tenant_id, "Tenant")
    ensure_tenant_access(principal, tenant.id)
    changes = patch.changes()

    if not principal.is_super_admin:
        if not principal.is_tenant_admin:
            raise AuthorizationError("Only tenant admins can update the tenant")
        if SUPER_ADMIN_FIELDS & changes.keys():
            raise AuthorizationError("Only super admins can change status, plan or limits")

    if "name" in changes:
        tenant.name = changes["name"].strip()

    if principal.is_super_admin:
        if "status" in changes:
            tenant.status = TenantStatus(changes["status"]).value
        if "subscription_plan" in changes:
            plan = SubscriptionPlan(changes["subscription_plan"])
            tenant.subscription_plan = plan.value
            tenant.max_users, tenant.max_projects = PLAN_LIMITS[plan]
        # explicit limits in the same request win over the plan table
        if "max_users" in changes:
            tenant.max_users = changes["max_users"]
        if "max_projects" in changes:
            tenant.max_projects = changes["max_projects"]

    db.commit()
    logger.info("Tenant updated tenant_id=%s fields=%s", tenant.id, sorted(changes))
    audit.record(
        db,
        audit.UPDATE_TENANT,
        tenant_id=tenant.id,
        user_id=principal.user_id,
        entity_type="tenant",
        entity_id=tenant.id,
        ip_address=ip_address,
    )
    return tenant
