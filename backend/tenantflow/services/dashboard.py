from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal, resolve_tenant_scope
from tenantflow.models.enums import Role, TaskStatus
from tenantflow.models.project import Project
from tenantflow.models.task import Task
from tenantflow.models.user import User


def get_stats(db: Session, principal: Principal) -> dict:
    """Global counters for super admins, tenant counters for everyone else."""
    scope = resolve_tenant_scope(principal)

    def _count(model, *where) -> int:
        stmt = select(func.count()).select_from(model)
        if scope is not None:
            stmt = stmt.where(model.tenant_id == scope)
        if where:
            stmt = stmt.where(*where)
        return int(db.scalar(stmt) or 0)

    total_tasks = _count(Task)
    completed = _count(Task, Task.status == TaskStatus.COMPLETED.value)
    return {
        "scope": "global" if scope is None else "tenant",
        "total_projects": _count(Project),
        "active_tasks": total_tasks - completed,
        "completed_tasks": completed,
        "total_users": _count(User, User.role != Role.SUPER_ADMIN.value),
    }
