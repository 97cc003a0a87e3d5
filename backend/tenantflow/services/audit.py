"""Audit trail for mutating actions.

``record`` is best-effort: it commits on its own after the business change is
already committed, and a failed write is logged and dropped. ``stage`` only
adds the row to the caller's open transaction, for the one flow (tenant
registration) whose audit entry must succeed or fail with the data it
describes.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal, require_admin, resolve_tenant_scope
from tenantflow.core.pagination import count_rows, page_params, pagination_meta
from tenantflow.models.audit import AuditLog

logger = logging.getLogger(__name__)

CREATE_TENANT = "CREATE_TENANT"
UPDATE_TENANT = "UPDATE_TENANT"
CREATE_USER = "CREATE_USER"
UPDATE_USER = "UPDATE_USER"
DELETE_USER = "DELETE_USER"
CREATE_PROJECT = "CREATE_PROJECT"
UPDATE_PROJECT = "UPDATE_PROJECT"
DELETE_PROJECT = "DELETE_PROJECT"
CREATE_TASK = "CREATE_TASK"
UPDATE_TASK = "UPDATE_TASK"
UPDATE_TASK_STATUS = "UPDATE_TASK_STATUS"
DELETE_TASK = "DELETE_TASK"
LOGOUT = "LOGOUT"


def stage(
    db: Session,
    action: str,
    *,
    tenant_id: str | None = None,
    user_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=ip_address,
    )
    db.add(entry)
    return entry


def record(db: Session, action: str, **fields) -> None:
    try:
        stage(db, action, **fields)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Audit write failed action=%s entity=%s:%s",
            action,
            fields.get("entity_type"),
            fields.get("entity_id"),
        )


def list_entries(
    db: Session,
    principal: Principal,
    *,
    tenant_id: str | None = None,
    action: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    require_admin(principal, "Only admins can read audit logs")
    scope = resolve_tenant_scope(principal, tenant_id)
    params = page_params(page, limit, default_limit=50)

    stmt = select(AuditLog)
    if scope is not None:
        stmt = stmt.where(AuditLog.tenant_id == scope)
    if action:
        stmt = stmt.where(AuditLog.action == action.upper())

    total = count_rows(db, stmt)
    logs = db.scalars(
        stmt.order_by(AuditLog.created_at.desc()).limit(params.limit).offset(params.offset)
    ).all()
    return {"logs": list(logs), "total": total, "pagination": pagination_meta(total, params)}
