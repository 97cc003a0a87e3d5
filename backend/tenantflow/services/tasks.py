from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal, get_scoped_or_404
from tenantflow.core.errors import ValidationError
from tenantflow.core.pagination import count_rows, like_term, page_params, pagination_meta
from tenantflow.models.enums import TaskPriority, TaskStatus
from tenantflow.models.project import Project
from tenantflow.models.task import Task
from tenantflow.models.user import User
from tenantflow.schemas.task import TaskCreate, TaskUpdate
from tenantflow.services import audit

PRIORITY_ORDER = case(
    (Task.priority == TaskPriority.HIGH.value, 1),
    (Task.priority == TaskPriority.MEDIUM.value, 2),
    else_=3,
)


def _ensure_assignee(db: Session, tenant_id: str, user_id: str | None) -> None:
    if user_id is None:
        return
    found = db.scalar(select(User.id).where(User.id == user_id, User.tenant_id == tenant_id))
    if not found:
        raise ValidationError("Assigned user must belong to tenant")


def create_task(
    db: Session,
    principal: Principal,
    project_id: str,
    payload: TaskCreate,
    ip_address: str | None = None,
) -> Task:
    # any member of the project's tenant may create tasks
    project = get_scoped_or_404(db, principal, Project, project_id, "Project")
    _ensure_assignee(db, project.tenant_id, payload.assigned_to)

    task = Task(
        project_id=project.id,
        tenant_id=project.tenant_id,
        title=payload.title.strip(),
        description=payload.description,
        status=TaskStatus(payload.status).value,
        priority=TaskPriority(payload.priority).value,
        assigned_to=payload.assigned_to,
        due_date=payload.due_date,
    )
    db.add(task)
    db.commit()
    audit.record(
        db,
        audit.CREATE_TASK,
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip_address=ip_address,
    )
    return task


def list_tasks(
    db: Session,
    principal: Principal,
    project_id: str,
    *,
    status: TaskStatus | None = None,
    assigned_to: str | None = None,
    priority: TaskPriority | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    project = get_scoped_or_404(db, principal, Project, project_id, "Project")
    params = page_params(page, limit, default_limit=50)

    filters = [Task.tenant_id == project.tenant_id, Task.project_id == project.id]
    if status:
        filters.append(Task.status == TaskStatus(status).value)
    if assigned_to:
        filters.append(Task.assigned_to == assigned_to)
    if priority:
        filters.append(Task.priority == TaskPriority(priority).value)
    if search:
        filters.append(func.lower(Task.title).like(like_term(search), escape="\\"))

    total = count_rows(db, select(Task.id).where(*filters))
    rows = db.execute(
        select(Task, User.full_name, User.email)
        .outerjoin(User, User.id == Task.assigned_to)
        .where(*filters)
        .order_by(PRIORITY_ORDER, Task.due_date.is_(None), Task.due_date.asc())
        .limit(params.limit)
        .offset(params.offset)
    ).all()

    tasks = []
    for task, full_name, email in rows:
        item = {col: getattr(task, col) for col in Task.__table__.columns.keys()}
        item["assigned_user"] = (
            {"id": task.assigned_to, "full_name": full_name, "email": email} if task.assigned_to else None
        )
        tasks.append(item)
    return {"tasks": tasks, "total": total, "pagination": pagination_meta(total, params)}


def get_task(db: Session, principal: Principal, task_id: str) -> Task:
    return get_scoped_or_404(db, principal, Task, task_id, "Task")


def update_task(
    db: Session,
    principal: Principal,
    task_id: str,
    patch: TaskUpdate,
    ip_address: str | None = None,
) -> Task:
    task = get_scoped_or_404(db, principal, Task, task_id, "Task")
    changes = patch.changes()
    if "assigned_to" in changes:
        _ensure_assignee(db, task.tenant_id, changes["assigned_to"])

    if "title" in changes:
        task.title = changes["title"].strip()
    if "description" in changes:
        task.description = changes["description"]
    if "status" in changes:
        task.status = TaskStatus(changes["status"]).value
    if "priority" in changes:
        task.priority = TaskPriority(changes["priority"]).value
    if "assigned_to" in changes:
        task.assigned_to = changes["assigned_to"]
    if "due_date" in changes:
        task.due_date = changes["due_date"]

    db.commit()
    audit.record(
        db,
        audit.UPDATE_TASK,
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip_address=ip_address,
    )
    return task


def update_task_status(
    db: Session,
    principal: Principal,
    task_id: str,
    status: TaskStatus,
    ip_address: str | None = None,
) -> Task:
    task = get_scoped_or_404(db, principal, Task, task_id, "Task")
    task.status = TaskStatus(status).value
    db.commit()
    audit.record(
        db,
        audit.UPDATE_TASK_STATUS,
        tenant_id=task.tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task.id,
        ip_address=ip_address,
    )
    return task


def delete_task(db: Session, principal: Principal, task_id: str, ip_address: str | None = None) -> None:
    task = get_scoped_or_404(db, principal, Task, task_id, "Task")
    tenant_id = task.tenant_id
    db.delete(task)
    db.commit()
    audit.record(
        db,
        audit.DELETE_TASK,
        tenant_id=tenant_id,
        user_id=principal.user_id,
        entity_type="task",
        entity_id=task_id,
        ip_address=ip_address,
    )
