from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenantflow.core.authz import Principal
from tenantflow.core.security import get_principal
from tenantflow.deps import get_db
from tenantflow.schemas.common import Envelope, ok
from tenantflow.schemas.dashboard import DashboardStats
from tenantflow.services import dashboard as dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=Envelope[DashboardStats])
def stats(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return ok("Dashboard stats fetched", DashboardStats.model_validate(dashboard_service.get_stats(db, principal)))
