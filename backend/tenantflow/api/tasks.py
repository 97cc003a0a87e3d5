from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import client_ip, get_db
from tenantflow.models.enums import TaskPriority, TaskStatus
from tenantflow.schemas.common import Envelope, ok
from tenantflow.schemas.task import TaskCreate, TaskList, TaskOut, TaskStatusUpdate, TaskUpdate
from tenantflow.services import tasks as task_service

project_tasks_router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])
router = APIRouter(prefix="/tasks", tags=["tasks"])


@project_tasks_router.post("", response_model=Envelope[TaskOut], status_code=201)
def create_task(
    project_id: str,
    payload: TaskCreate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    task = task_service.create_task(db, principal, project_id, payload, ip_address=client_ip(request))
    return ok("Task created", TaskOut.model_validate(task))


@project_tasks_router.get("", response_model=Envelope[TaskList])
def list_tasks(
    project_id: str,
    status: TaskStatus | None = None,
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    priority: TaskPriority | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = task_service.list_tasks(
        db,
        principal,
        project_id,
        status=status,
        assigned_to=assigned_to,
        priority=priority,
        search=search,
        page=page,
        limit=limit,
    )
    return ok("Tasks fetched", TaskList.model_validate(result))


@router.get("/{task_id}", response_model=Envelope[TaskOut])
def get_task(task_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return ok("Task fetched", TaskOut.model_validate(task_service.get_task(db, principal, task_id)))


@router.patch("/{task_id}/status", response_model=Envelope[TaskOut])
def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    task = task_service.update_task_status(db, principal, task_id, payload.status, ip_address=client_ip(request))
    return ok("Task status updated", TaskOut.model_validate(task))


@router.patch("/{task_id}", response_model=Envelope[TaskOut])
@router.put("/{task_id}", response_model=Envelope[TaskOut])
def update_task(
    task_id: str,
    payload: TaskUpdate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    task = task_service.update_task(db, principal, task_id, payload, ip_address=client_ip(request))
    return ok("Task updated", TaskOut.model_validate(task))


@router.delete("/{task_id}", response_model=Envelope[None])
def delete_task(
    task_id: str,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, principal, task_id, ip_address=client_ip(request))
    return ok("Task deleted successfully")
