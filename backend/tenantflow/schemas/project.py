from datetime import datetime

from pydantic import Field

from tenantflow.models.enums import ProjectStatus
from tenantflow.schemas.common import CamelModel, Pagination, PatchModel


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    # only honoured for super admins, who have no tenant of their own
    tenant_id: str | None = None


class ProjectUpdate(PatchModel):
    NULLABLE = frozenset({"description"})

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None


class ProjectOut(CamelModel):
    id: str
    tenant_id: str
    name: str
    description: str | None
    status: str
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class Creator(CamelModel):
    id: str
    full_name: str | None


class ProjectSummary(ProjectOut):
    task_count: int = 0
    completed_task_count: int = 0
    creator: Creator | None = None


class ProjectList(CamelModel):
    projects: list[ProjectSummary]
    total: int
    pagination: Pagination
