from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from vetclinic.db.session import get_db
from vetclinic.schemas.accounting import (
    AccountingTemplateCreate,
    AccountingTemplateRead,
    AccountingTemplateUpdate,
    LedgerEntryCreate,
    LedgerEntryRead,
    LedgerEntryUpdate,
    LedgerListResponse,
    PeriodSummary,
    TemplateApplyRequest,
    TemplateGroups,
)
from vetclinic.services.accounting import AccountingService, TemplateService
from vetclinic.services.realtime.sessions import UserSession, get_user_session

router = APIRouter(prefix="/accounting", tags=["accounting"])


def _accounting(db: Session, session: UserSession) -> AccountingService:
    return AccountingService(
        db,
        session.user.tenant_id,
        cache=session.cache,
        memo=session.summary_memo,
        user_id=session.user.user_id,
    )


@router.get("/summary", response_model=PeriodSummary)
def get_summary(
    period: str = Query("month", pattern="^(day|month|quarter|year|custom)$"),
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> PeriodSummary:
    return _accounting(db, session).summary(period, from_date, to_date)


@router.get("/entries", response_model=LedgerListResponse)
def list_entries(
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> LedgerListResponse:
    return _accounting(db, session).ledger(from_date, to_date)


@router.post("/entries", response_model=LedgerEntryRead, status_code=201)
def create_entry(
    payload: LedgerEntryCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> LedgerEntryRead:
    row = _accounting(db, session).add_entry(payload)
    return LedgerEntryRead.model_validate(row)


@router.patch("/entries/{entry_id}", response_model=LedgerEntryRead)
def update_entry(
    entry_id: UUID,
    payload: LedgerEntryUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> LedgerEntryRead:
    row = _accounting(db, session).update_entry(entry_id, payload)
    return LedgerEntryRead.model_validate(row)


@router.delete("/entries/{entry_id}", status_code=204)
def delete_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> Response:
    _accounting(db, session).delete_entry(entry_id)
    return Response(status_code=204)


@router.get("/templates", response_model=TemplateGroups)
def list_templates(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> TemplateGroups:
    return TemplateService(db, session.user.tenant_id).grouped(include_inactive=include_inactive)


@router.post("/templates", response_model=AccountingTemplateRead, status_code=201)
def create_template(
    payload: AccountingTemplateCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> AccountingTemplateRead:
    row = TemplateService(db, session.user.tenant_id).add(payload)
    return AccountingTemplateRead.model_validate(row)


@router.patch("/templates/{template_id}", response_model=AccountingTemplateRead)
def update_template(
    template_id: UUID,
    payload: AccountingTemplateUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> AccountingTemplateRead:
    row = TemplateService(db, session.user.tenant_id).update(template_id, payload)
    return AccountingTemplateRead.model_validate(row)


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(
    template_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> Response:
    TemplateService(db, session.user.tenant_id).delete(template_id)
    return Response(status_code=204)


@router.post("/templates/{template_id}/apply", response_model=LedgerEntryRead, status_code=201)
def apply_template(
    template_id: UUID,
    payload: TemplateApplyRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_user_session),
) -> LedgerEntryRead:
    service = TemplateService(db, session.user.tenant_id, accounting=_accounting(db, session))
    return LedgerEntryRead.model_validate(service.apply(template_id, payload))
