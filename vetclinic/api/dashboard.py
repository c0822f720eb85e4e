from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vetclinic.db.session import get_db
from vetclinic.schemas.dashboard import DashboardStats
from vetclinic.services.dashboard_service import DashboardService
from vetclinic.services.accounting import AccountingService
from vetclinic.services.realtime.sessions import UserSession, get_user_session

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(db: Session = Depends(get_db), session: UserSession = Depends(get_user_session)) -> DashboardStats:
    tenant_id = session.user.tenant_id
    accounting = AccountingService(db, tenant_id, cache=session.cache, memo=session.summary_memo)
    return DashboardService(db, tenant_id, cache=session.cache, accounting=accounting).stats()
