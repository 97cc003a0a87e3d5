from datetime import date, datetime

from pydantic import Field

from tenantflow.models.enums import TaskPriority, TaskStatus
from tenantflow.schemas.common import CamelModel, Pagination, PatchModel


class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str | None = None
    due_date: date | None = None


class TaskUpdate(PatchModel):
    NULLABLE = frozenset({"description", "assigned_to", "due_date"})

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to: str | None = None
    due_date: date | None = None


class TaskStatusUpdate(CamelModel):
    status: TaskStatus


class TaskOut(CamelModel):
    id: str
    project_id: str
    tenant_id: str
    title: str
    description: str | None
    status: str
    priority: str
    assigned_to: str | None
    due_date: date | None
    created_at: datetime
    updated_at: datetime


class Assignee(CamelModel):
    id: str
    full_name: str
    email: str


class TaskSummary(TaskOut):
    assigned_user: Assignee | None = None


class TaskList(CamelModel):
    tasks: list[TaskSummary]
    total: int
    pagination: Pagination
