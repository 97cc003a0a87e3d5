from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import client_ip, get_db
from tenantflow.models.enums import ProjectStatus
from tenantflow.schemas.common import Envelope, ok
from tenantflow.schemas.project import ProjectCreate, ProjectList, ProjectOut, ProjectSummary, ProjectUpdate
from tenantflow.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=Envelope[ProjectList])
def list_projects(
    status: ProjectStatus | None = None,
    search: str | None = None,
    tenant_id: str | None = Query(default=None, alias="tenantId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = project_service.list_projects(
        db, principal, tenant_id=tenant_id, status=status, search=search, page=page, limit=limit
    )
    return ok("Projects fetched", ProjectList.model_validate(result))


@router.post("", response_model=Envelope[ProjectOut], status_code=201)
def create_project(
    payload: ProjectCreate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    project = project_service.create_project(db, principal, payload, ip_address=client_ip(request))
    return ok("Project created", ProjectOut.model_validate(project))


@router.get("/{project_id}", response_model=Envelope[ProjectSummary])
def get_project(project_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return ok("Project fetched", ProjectSummary.model_validate(project_service.get_project(db, principal, project_id)))


# PUT kept next to PATCH; both are partial updates
@router.patch("/{project_id}", response_model=Envelope[ProjectOut])
@router.put("/{project_id}", response_model=Envelope[ProjectOut])
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    project = project_service.update_project(db, principal, project_id, payload, ip_address=client_ip(request))
    return ok("Project updated", ProjectOut.model_validate(project))


@router.delete("/{project_id}", response_model=Envelope[None])
def delete_project(
    project_id: str,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    project_service.delete_project(db, principal, project_id, ip_address=client_ip(request))
    return ok("Project deleted successfully")
