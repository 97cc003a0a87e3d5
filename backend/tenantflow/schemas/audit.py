from datetime import datetime

from tenantflow.schemas.common import CamelModel, Pagination


class AuditLogOut(CamelModel):
    id: str
    tenant_id: str | None
    user_id: str | None
    action: str
    entity_type: str | None
    entity_id: str | None
    ip_address: str | None
    created_at: datetime


class AuditLogList(CamelModel):
    logs: list[AuditLogOut]
    total: int
    pagination: Pagination
