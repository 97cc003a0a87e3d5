"""Authorization gate: principal, role tiers and tenant isolation checks.

Every service receives the caller as an explicit ``Principal`` and runs the
checks below before reading or mutating tenant-scoped rows. The rules:

- ``super_admin`` is global and skips tenant scoping entirely.
- everyone else may only touch rows whose ``tenant_id`` equals their own.
- absent rows are reported as 404 *before* any tenant comparison, so a
  mismatch is always 403 and never leaks whether the row exists elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from tenantflow.core.errors import AuthenticationError, AuthorizationError, NotFoundError
from tenantflow.models.enums import Role

CROSS_TENANT_MESSAGE = "Cross-tenant access not allowed"

ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.TENANT_ADMIN})

T = TypeVar("T")


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: str
    role: Role
    tenant_id: str | None

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.role == Role.TENANT_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    try:
        return Principal(
            user_id=str(claims["sub"]),
            email=str(claims.get("email") or ""),
            role=Role(claims["role"]),
            tenant_id=claims.get("tenantId"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid or expired token") from exc


def require_roles(principal: Principal, *roles: Role, message: str = "Forbidden") -> None:
    if principal.role not in roles:
        raise AuthorizationError(message)


def require_admin(principal: Principal, message: str = "Forbidden") -> None:
    require_roles(principal, *ADMIN_ROLES, message=message)


def can_access_tenant(principal: Principal, tenant_id: str | None) -> bool:
    if principal.is_super_admin:
        return True
    return principal.tenant_id is not None and principal.tenant_id == tenant_id


def ensure_tenant_access(principal: Principal, tenant_id: str | None) -> None:
    if not can_access_tenant(principal, tenant_id):
        raise AuthorizationError(CROSS_TENANT_MESSAGE)


def get_or_404(db: Session, model: type[T], entity_id: str, label: str) -> T:
    obj = db.get(model, entity_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def get_scoped_or_404(db: Session, principal: Principal, model: type[T], entity_id: str, label: str) -> T:
    """Load a tenant-owned row: 404 when absent, 403 when it belongs to another tenant."""
    obj = get_or_404(db, model, entity_id, label)
    ensure_tenant_access(principal, getattr(obj, "tenant_id"))
    return obj


def resolve_tenant_scope(principal: Principal, requested_tenant_id: str | None = None) -> str | None:
    """Tenant filter for list queries; ``None`` means unscoped (super admin only)."""
    if principal.is_super_admin:
        return requested_tenant_id
    if requested_tenant_id is not None and requested_tenant_id != principal.tenant_id:
        raise AuthorizationError(CROSS_TENANT_MESSAGE)
    if principal.tenant_id is None:
        raise AuthorizationError(CROSS_TENANT_MESSAGE)
    return principal.tenant_id
