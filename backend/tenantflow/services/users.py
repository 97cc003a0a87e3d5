import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal, ensure_tenant_access, get_or_404, get_scoped_or_404, require_admin
from tenantflow.core.errors import AuthorizationError, ConflictError
from tenantflow.core.pagination import count_rows, like_term, page_params, pagination_meta
from tenantflow.core.security import check_password_policy, hash_password
from tenantflow.models.enums import Role
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User
from tenantflow.schemas.user import UserCreate, UserUpdate
from tenantflow.services import audit
from tenantflow.services.auth import normalize_email

logger = logging.getLogger(__name__)

USER_LIMIT_REACHED = "User limit reached for current plan"
EMAIL_TAKEN = "Email already exists for this tenant"


def count_tenant_users(db: Session, tenant_id: str) -> int:
    # super admins never count against a tenant's plan
    stmt = (
        select(func.count())
        .select_from(User)
        .where(User.tenant_id == tenant_id, User.role != Role.SUPER_ADMIN.value)
    )
    return int(db.scalar(stmt) or 0)


def ensure_user_limit(db: Session, tenant: Tenant) -> None:
    # check-then-insert, not atomic: concurrent creates may overshoot briefly
    if count_tenant_users(db, tenant.id) >= tenant.max_users:
        logger.info("User limit hit tenant_id=%s max_users=%s", tenant.id, tenant.max_users)
        raise AuthorizationError(USER_LIMIT_REACHED)


def create_user(
    db: Session,
    principal: Principal,
    tenant_id: str,
    payload: UserCreate,
    ip_address: str | None = None,
) -> User:
    require_admin(principal, "Only admins can create users")
    tenant = get_or_404(db, Tenant, tenant_id, "Tenant")
    ensure_tenant_access(principal, tenant.id)

    role = Role(payload.role)
    if role == Role.SUPER_ADMIN and not principal.is_super_admin:
        raise AuthorizationError("Cannot create super admin user")
    check_password_policy(payload.password)

    if role != Role.SUPER_ADMIN:
        ensure_user_limit(db, tenant)

    email = normalize_email(payload.email)
    if db.scalar(select(User.id).where(User.tenant_id == tenant.id, User.email == email)):
        raise ConflictError(EMAIL_TAKEN)

    user = User(
        tenant_id=tenant.id,
        email=email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name.strip(),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(EMAIL_TAKEN) from exc

    audit.record(
        db,
        audit.CREATE_USER,
        tenant_id=tenant.id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user.id,
        ip_address=ip_address,
    )
    return user


def list_users(
    db: Session,
    principal: Principal,
    tenant_id: str,
    *,
    search: str | None = None,
    role: Role | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    tenant = get_or_404(db, Tenant, tenant_id, "Tenant")
    ensure_tenant_access(principal, tenant.id)
    params = page_params(page, limit, default_limit=50)

    stmt = select(User).where(User.tenant_id == tenant.id)
    if search:
        term = like_term(search)
        stmt = stmt.where(
            or_(func.lower(User.full_name).like(term, escape="\\"), func.lower(User.email).like(term, escape="\\"))
        )
    if role:
        stmt = stmt.where(User.role == Role(role).value)

    total = count_rows(db, stmt)
    users = db.scalars(stmt.order_by(User.created_at.desc()).limit(params.limit).offset(params.offset)).all()
    return {"users": list(users), "total": total, "pagination": pagination_meta(total, params)}


def get_user(db: Session, principal: Principal, user_id: str) -> User:
    return get_scoped_or_404(db, principal, User, user_id, "User")


def update_user(
    db: Session,
    principal: Principal,
    user_id: str,
    patch: UserUpdate,
    ip_address: str | None = None,
) -> User:
    """Apply a partial update; every rule is checked before anything is written."""
    user = get_scoped_or_404(db, principal, User, user_id, "User")
    changes = patch.changes()
    is_self = principal.user_id == user.id
    target_is_super = user.role == Role.SUPER_ADMIN.value

    if not principal.is_admin and not is_self:
        raise AuthorizationError("Forbidden")
    if principal.is_tenant_admin and target_is_super and not is_self:
        raise AuthorizationError("Cannot modify a super admin")

    if "role" in changes:
        new_role = Role(changes["role"])
        if is_self:
            raise AuthorizationError("Cannot change your own role")
        if not principal.is_admin:
            raise AuthorizationError("Only admins can change user roles")
        if new_role == Role.SUPER_ADMIN and not principal.is_super_admin:
            raise AuthorizationError("Cannot assign super admin role")

    if "is_active" in changes:
        if is_self and changes["is_active"] is False:
            raise AuthorizationError("Cannot deactivate your own account")
        if not principal.is_admin:
            raise AuthorizationError("Only admins can change user active status")

    if "password" in changes:
        check_password_policy(changes["password"])

    if "full_name" in changes:
        user.full_name = changes["full_name"].strip()
    if "password" in changes:
        user.password_hash = hash_password(changes["password"])
    if "role" in changes:
        user.role = Role(changes["role"]).value
    if "is_active" in changes:
        user.is_active = changes["is_active"]

    db.commit()
    audit.record(
        db,
        audit.UPDATE_USER,
        tenant_id=user.tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user.id,
        ip_address=ip_address,
    )
    return user


def delete_user(db: Session, principal: Principal, user_id: str, ip_address: str | None = None) -> None:
    require_admin(principal, "Only admins can delete users")
    user = get_scoped_or_404(db, principal, User, user_id, "User")

    if user.id == principal.user_id:
        raise AuthorizationError("Cannot delete own account")
    if principal.is_tenant_admin and user.role == Role.SUPER_ADMIN.value:
        raise AuthorizationError("Cannot delete super admin user")

    tenant_id = user.tenant_id
    db.delete(user)
    db.commit()
    audit.record(
        db,
        audit.DELETE_USER,
        tenant_id=tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=user_id,
        ip_address=ip_address,
    )
