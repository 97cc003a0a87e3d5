from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import client_ip, get_db
from tenantflow.models.enums import SubscriptionPlan, TenantStatus
from tenantflow.schemas.auth import RegisterTenantIn, RegisterTenantOut
from tenantflow.schemas.common import Envelope, ok
from tenantflow.schemas.tenant import TenantDetail, TenantList, TenantOut, TenantUpdate
from tenantflow.services import tenants as tenant_service

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("", response_model=Envelope[TenantList])
def list_tenants(
    status: TenantStatus | None = None,
    subscription_plan: SubscriptionPlan | None = Query(default=None, alias="subscriptionPlan"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = tenant_service.list_tenants(
        db, principal, status=status, subscription_plan=subscription_plan, page=page, limit=limit
    )
    return ok("Tenants fetched", TenantList.model_validate(result))


@router.post("", response_model=Envelope[RegisterTenantOut], status_code=201)
def create_tenant(
    payload: RegisterTenantIn,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    result = tenant_service.create_tenant(db, principal, payload, ip_address=client_ip(request))
    return ok("Tenant created successfully", RegisterTenantOut.model_validate(result, from_attributes=True))


@router.get("/{tenant_id}", response_model=Envelope[TenantDetail])
def get_tenant(tenant_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return ok("Tenant fetched", TenantDetail.model_validate(tenant_service.get_tenant(db, principal, tenant_id)))


@router.put("/{tenant_id}", response_model=Envelope[TenantOut])
def update_tenant(
    tenant_id: str,
    payload: TenantUpdate,
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    tenant = tenant_service.update_tenant(db, principal, tenant_id, payload, ip_address=client_ip(request))
    return ok("Tenant updated successfully", TenantOut.model_validate(tenant))
