import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tenantflow.core.authz import (
    CROSS_TENANT_MESSAGE,
    Principal,
    get_or_404,
    get_scoped_or_404,
    require_admin,
    resolve_tenant_scope,
)
from tenantflow.core.errors import AuthenticationError, AuthorizationError, ValidationError
from tenantflow.core.pagination import count_rows, like_term, page_params, pagination_meta
from tenantflow.core.security import INVALID_TOKEN
from tenantflow.models.enums import ProjectStatus, TaskStatus
from tenantflow.models.project import Project
from tenantflow.models.task import Task
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User
from tenantflow.schemas.project import ProjectCreate, ProjectUpdate
from tenantflow.services import audit

logger = logging.getLogger(__name__)

PROJECT_LIMIT_REACHED = "Project limit reached for current plan"


def count_tenant_projects(db: Session, tenant_id: str) -> int:
    return int(db.scalar(select(func.count()).select_from(Project).where(Project.tenant_id == tenant_id)) or 0)


def ensure_project_limit(db: Session, tenant: Tenant) -> None:
    # check-then-insert, not atomic: concurrent creates may overshoot briefly
    if count_tenant_projects(db, tenant.id) >= tenant.max_projects:
        logger.info("Project limit hit tenant_id=%s max_projects=%s", tenant.id, tenant.max_projects)
        raise AuthorizationError(PROJECT_LIMIT_REACHED)


def _target_tenant_id(principal: Principal, requested: str | None) -> str:
    if principal.is_super_admin:
        target = requested or principal.tenant_id
        if not target:
            raise ValidationError("tenantId is required to create a project")
        return target
    if requested and requested != principal.tenant_id:
        raise AuthorizationError(CROSS_TENANT_MESSAGE)
    return principal.tenant_id


def _ensure_can_manage(principal: Principal, project: Project) -> None:
    # admins, or the creator while still a member of the owning tenant
    if principal.is_admin:
        return
    if project.created_by and project.created_by == principal.user_id:
        return
    raise AuthorizationError("Only admins or the project creator can modify this project")


def create_project(db: Session, principal: Principal, payload: ProjectCreate, ip_address: str | None = None) -> Project:
    require_admin(principal, "Only admins can create projects")
    if db.get(User, principal.user_id) is None:
        # token outlived its user; created_by would point nowhere
        raise AuthenticationError(INVALID_TOKEN)
    tenant = get_or_404(db, Tenant, _target_tenant_id(principal, payload.tenant_id), "Tenant")
    ensure_project_limit(db, tenant)

    project = Project(
        tenant_id=tenant.id,
        name=payload.name.strip(),
        description=payload.description,
        status=ProjectStatus(payload.status).value,
        created_by=principal.user_id,
    )
    db.add(project)
    db.commit()
    audit.record(
        db,
        audit.CREATE_PROJECT,
        tenant_id=tenant.id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project.id,
        ip_address=ip_address,
    )
    return project


def _summary_stmt():
    task_count = (
        select(func.count(Task.id)).where(Task.project_id == Project.id).correlate(Project).scalar_subquery()
    )
    completed_count = (
        select(func.count(Task.id))
        .where(Task.project_id == Project.id, Task.status == TaskStatus.COMPLETED.value)
        .correlate(Project)
        .scalar_subquery()
    )
    return select(
        Project,
        User.full_name,
        task_count.label("task_count"),
        completed_count.label("completed_task_count"),
    ).outerjoin(User, User.id == Project.created_by)


def _summary(row) -> dict:
    project, creator_name, task_count, completed = row
    return {
        **{col: getattr(project, col) for col in Project.__table__.columns.keys()},
        "task_count": int(task_count or 0),
        "completed_task_count": int(completed or 0),
        "creator": {"id": project.created_by, "full_name": creator_name} if project.created_by else None,
    }


def list_projects(
    db: Session,
    principal: Principal,
    *,
    tenant_id: str | None = None,
    status: ProjectStatus | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    scope = resolve_tenant_scope(principal, tenant_id)
    params = page_params(page, limit, default_limit=20)

    filters = []
    if scope is not None:
        filters.append(Project.tenant_id == scope)
    if status:
        filters.append(Project.status == ProjectStatus(status).value)
    if search:
        filters.append(func.lower(Project.name).like(like_term(search), escape="\\"))

    total = count_rows(db, select(Project.id).where(*filters))
    rows = db.execute(
        _summary_stmt()
        .where(*filters)
        .order_by(Project.created_at.desc())
        .limit(params.limit)
        .offset(params.offset)
    ).all()
    return {
        "projects": [_summary(row) for row in rows],
        "total": total,
        "pagination": pagination_meta(total, params),
    }


def get_project(db: Session, principal: Principal, project_id: str) -> dict:
    project = get_scoped_or_404(db, principal, Project, project_id, "Project")
    row = db.execute(_summary_stmt().where(Project.id == project.id)).one()
    return _summary(row)


def update_project(
    db: Session,
    principal: Principal,
    project_id: str,
    patch: ProjectUpdate,
    ip_address: str | None = None,
) -> Project:
    project = get_scoped_or_404(db, principal, Project, project_id, "Project")
    _ensure_can_manage(principal, project)

    changes = patch.changes()
    if "name" in changes:
        project.name = changes["name"].strip()
    if "description" in changes:
        project.description = changes["description"]
    if "status" in changes:
        project.status = ProjectStatus(changes["status"]).value

    db.commit()
    audit.record(
        db,
        audit.UPDATE_PROJECT,
        tenant_id=project.tenant_id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project.id,
        ip_address=ip_address,
    )
    return project


def delete_project(db: Session, principal: Principal, project_id: str, ip_address: str | None = None) -> None:
    project = get_scoped_or_404(db, principal, Project, project_id, "Project")
    _ensure_can_manage(principal, project)

    tenant_id = project.tenant_id
    db.delete(project)
    db.commit()
    audit.record(
        db,
        audit.DELETE_PROJECT,
        tenant_id=tenant_id,
        user_id=principal.user_id,
        entity_type="project",
        entity_id=project_id,
        ip_address=ip_address,
    )
