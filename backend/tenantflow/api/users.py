from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import client_ip, get_db
from tenantflow.models.enums import Role
from tenantflow.schemas.common import Envelope, ok
from tenantflow.schemas.user import UserCreate, UserList, UserOut, UserUpdate
from tenantflow.services import users as user_service

tenant_users_router = APIRouter(prefix="/tenants/{tenant_id}/users", tags=["users"])
router = APIRouter(prefix="/users", tags=["users"])


@tenant_users_router.post("", response_model=Envelope[UserOut], status_code=201)
def create_user(
    tenant_id: str,
    payload: UserCreate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(db, principal, tenant_id, payload, ip_address=client_ip(request))
    return ok("User created successfully", UserOut.model_validate(user))


@tenant_users_router.get("", response_model=Envelope[UserList])
def list_users(
    tenant_id: str,
    search: str | None = None,
    role: Role | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = user_service.list_users(db, principal, tenant_id, search=search, role=role, page=page, limit=limit)
    return ok("Users fetched", UserList.model_validate(result, from_attributes=True))


@router.get("/{user_id}", response_model=Envelope[UserOut])
def get_user(user_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return ok("User fetched", UserOut.model_validate(user_service.get_user(db, principal, user_id)))


@router.put("/{user_id}", response_model=Envelope[UserOut])
def update_user(
    user_id: str,
    payload: UserUpdate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    user = user_service.update_user(db, principal, user_id, payload, ip_address=client_ip(request))
    return ok("User updated successfully", UserOut.model_validate(user))


@router.delete("/{user_id}", response_model=Envelope[None])
def delete_user(
    user_id: str,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, principal, user_id, ip_address=client_ip(request))
    return ok("User deleted successfully")
