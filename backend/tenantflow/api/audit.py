from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import get_db
from tenantflow.schemas.audit import AuditLogList
from tenantflow.schemas.common import Envelope, ok
from tenantflow.services import audit as audit_service

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=Envelope[AuditLogList])
def list_audit_logs(
    tenant_id: str | None = Query(default=None, alias="tenantId"),
    action: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = audit_service.list_entries(db, principal, tenant_id=tenant_id, action=action, page=page, limit=limit)
    return ok("Audit logs fetched", AuditLogList.model_validate(result, from_attributes=True))
