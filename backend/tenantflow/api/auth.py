from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.errors import NotFoundError
from tenantflow.core.security import get_principal
from tenantflow.core.settings import Settings
from tenantflow.deps import client_ip, get_app_settings, get_db
from tenantflow.schemas.auth import LoginIn, LoginOut, MeOut, RegisterTenantIn, RegisterTenantOut
from tenantflow.schemas.common import Envelope, ok
from tenantflow.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register-tenant", response_model=Envelope[RegisterTenantOut], status_code=201)
def register_tenant(payload: RegisterTenantIn, request: Request, db: Session = Depends(get_db)):
    result = auth_service.register_tenant(
        db,
        tenant_name=payload.tenant_name,
        subdomain=payload.subdomain,
        admin_email=payload.admin_email,
        admin_password=payload.admin_password,
        admin_full_name=payload.admin_full_name,
        ip_address=client_ip(request),
    )
    return ok("Tenant registered successfully", RegisterTenantOut.model_validate(result, from_attributes=True))


@router.post("/login", response_model=Envelope[LoginOut])
def login(payload: LoginIn, db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)):
    result = auth_service.login(
        db,
        settings,
        email=payload.email,
        password=payload.password,
        tenant_subdomain=payload.tenant_subdomain,
        tenant_id=payload.tenant_id,
    )
    return ok("Login successful", LoginOut.model_validate(result, from_attributes=True))


@router.get("/me", response_model=Envelope[MeOut])
def me(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    found = auth_service.get_current_user(db, principal.user_id)
    if found is None:
        raise NotFoundError("User not found")
    user, tenant = found
    data = MeOut.model_validate(
        {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role,
            "is_active": user.is_active,
            "tenant": tenant,
        },
        from_attributes=True,
    )
    return ok("User fetched", data)


@router.post("/logout", response_model=Envelope[None])
def logout(request: Request, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    auth_service.logout(db, principal, ip_address=client_ip(request))
    return ok("Logged out successfully")
