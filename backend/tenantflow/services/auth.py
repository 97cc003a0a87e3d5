import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from tenantflow.core.security import check_password_policy, create_access_token, hash_password, verify_password
from tenantflow.core.settings import Settings
from tenantflow.models.enums import PLAN_LIMITS, Role, SubscriptionPlan, TenantStatus
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User
from tenantflow.services import audit

logger = logging.getLogger(__name__)

# unknown user, wrong tenant and wrong password all answer the same
INVALID_CREDENTIALS = "Invalid credentials"

SUBDOMAIN_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_subdomain(subdomain: str) -> str:
    value = (subdomain or "").strip().lower()
    if not SUBDOMAIN_RE.match(value):
        raise ValidationError("Subdomain may only contain lowercase letters, digits and hyphens")
    return value


def register_tenant(
    db: Session,
    *,
    tenant_name: str,
    subdomain: str,
    admin_email: str,
    admin_password: str,
    admin_full_name: str,
    ip_address: str | None = None,
) -> dict:
    """Create tenant + first tenant_admin + audit entry as one transaction."""
    subdomain = normalize_subdomain(subdomain)
    check_password_policy(admin_password)

    if db.scalar(select(Tenant.id).where(Tenant.subdomain == subdomain)):
        raise ConflictError("Subdomain already exists")

    max_users, max_projects = PLAN_LIMITS[SubscriptionPlan.FREE]
    try:
        tenant = Tenant(
            name=tenant_name.strip(),
            subdomain=subdomain,
            subscription_plan=SubscriptionPlan.FREE.value,
            max_users=max_users,
            max_projects=max_projects,
        )
        db.add(tenant)
        db.flush()

        admin = User(
            tenant_id=tenant.id,
            email=normalize_email(admin_email),
            password_hash=hash_password(admin_password),
            full_name=admin_full_name.strip(),
            role=Role.TENANT_ADMIN.value,
            is_active=True,
        )
        db.add(admin)
        db.flush()

        audit.stage(
            db,
            audit.CREATE_TENANT,
            tenant_id=tenant.id,
            user_id=admin.id,
            entity_type="tenant",
            entity_id=tenant.id,
            ip_address=ip_address,
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # lost a race on the unique subdomain
        raise ConflictError("Subdomain already exists") from exc
    except Exception:
        db.rollback()
        raise

    logger.info("Tenant registered tenant_id=%s subdomain=%s", tenant.id, tenant.subdomain)
    return {
        "tenant_id": tenant.id,
        "subdomain": tenant.subdomain,
        "admin_user": admin,
    }


def _resolve_login_tenant(db: Session, tenant_subdomain: str | None, tenant_id: str | None) -> Tenant | None:
    if tenant_id:
        tenant = db.get(Tenant, tenant_id)
    elif tenant_subdomain:
        tenant = db.scalar(select(Tenant).where(Tenant.subdomain == tenant_subdomain.strip().lower()))
    else:
        return None

    if tenant is None:
        raise NotFoundError("Tenant not found")
    if tenant.status == TenantStatus.SUSPENDED.value:
        raise AuthorizationError("Account suspended")
    return tenant


def _find_login_user(db: Session, email: str, tenant: Tenant | None) -> User | None:
    # The same email may exist in several tenants, so a tenant context always
    # wins. Without one, only a super admin can match unambiguously; any other
    # match is reported as a missing tenant context by the caller.
    if tenant is not None:
        member = db.scalar(select(User).where(User.email == email, User.tenant_id == tenant.id))
        if member is not None:
            return member

    candidates = select(User).where(User.email == email)
    super_admin = db.scalar(candidates.where(User.role == Role.SUPER_ADMIN.value).order_by(User.created_at).limit(1))
    if super_admin is not None or tenant is not None:
        return super_admin
    return db.scalar(candidates.order_by(User.created_at).limit(1))


def login(
    db: Session,
    settings: Settings,
    *,
    email: str,
    password: str,
    tenant_subdomain: str | None = None,
    tenant_id: str | None = None,
) -> dict:
    tenant = _resolve_login_tenant(db, tenant_subdomain, tenant_id)
    user = _find_login_user(db, normalize_email(email), tenant)
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)

    if user.role != Role.SUPER_ADMIN.value:
        if tenant is None:
            raise ValidationError("Tenant context required")
        if user.tenant_id != tenant.id:
            raise AuthenticationError(INVALID_CREDENTIALS)

    if not user.is_active:
        raise AuthorizationError("Account inactive")

    if not verify_password(password, user.password_hash):
        logger.info("Login rejected user_id=%s: bad password", user.id)
        raise AuthenticationError(INVALID_CREDENTIALS)

    token = create_access_token(
        settings,
        user_id=user.id,
        email=user.email,
        role=user.role,
        tenant_id=user.tenant_id,
    )
    logger.info("Login ok user_id=%s tenant_id=%s", user.id, user.tenant_id)
    return {
        "token": token,
        "expires_in": settings.token_ttl_seconds,
        "user": user,
        "tenant": tenant,
    }


def get_current_user(db: Session, user_id: str) -> tuple[User, Tenant | None] | None:
    user = db.get(User, user_id)
    if user is None:
        return None
    tenant = db.get(Tenant, user.tenant_id) if user.tenant_id else None
    return user, tenant


def logout(db: Session, principal: Principal, ip_address: str | None = None) -> None:
    # tokens are stateless; logout only leaves a trace
    audit.record(
        db,
        audit.LOGOUT,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        entity_type="user",
        entity_id=principal.user_id,
        ip_address=ip_address,
    )
