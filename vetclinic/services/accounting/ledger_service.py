from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetclinic.core.errors import NotFoundError, PersistenceError
from vetclinic.models.ledger import LedgerEntry
from vetclinic.schemas.accounting import (
    DerivedLedgerRow,
    LedgerEntryCreate,
    LedgerEntryRead,
    LedgerEntryUpdate,
    LedgerListResponse,
    ManualLedgerRow,
    PeriodSummary,
)
from vetclinic.services.accounting.common import CUSTOM, DateRange, checked_range, logger, period_label, period_range
from vetclinic.services.accounting.ledger_view import ManualRow, build_ledger_rows
from vetclinic.services.accounting.repository import load_sources
from vetclinic.services.accounting.sources import SourceCollections
from vetclinic.services.accounting.summary_engine import SummaryMemo
from vetclinic.services.realtime.query_cache import QueryCache
from vetclinic.services.realtime.router import ACCOUNTING_SUMMARY_KEY, DASHBOARD_STATS_KEY, LEDGER_KEY


def resolve_period(kind: str | None, from_date: date | None, to_date: date | None, *, today: date | None = None) -> tuple[str, DateRange]:
    """Label and window for a summary request; explicit bounds win over the period default."""
    k = (kind or CUSTOM).strip().lower()
    default = period_range(k, today=today)
    if from_date or to_date:
        window = checked_range(from_date or default.start, to_date or default.end)
        if k != CUSTOM and window != default:
            k = CUSTOM
    else:
        window = default
    return period_label(k, window.start, window.end), window


class AccountingService:
    def __init__(
        self,
        db: Session,
        tenant_id: str,
        *,
        cache: QueryCache | None = None,
        memo: SummaryMemo | None = None,
        user_id: str | None = None,
    ):
        self.db = db
        self.tenant_id = tenant_id
        self.cache = cache if cache is not None else QueryCache()
        self.memo = memo if memo is not None else SummaryMemo()
        self.user_id = user_id

    def _sources(self, window: DateRange) -> SourceCollections:
        key = ACCOUNTING_SUMMARY_KEY + ("sources", window.start.isoformat(), window.end.isoformat())
        return self.cache.fetch(key, lambda: load_sources(self.db, self.tenant_id, window.start, window.end))

    def summary(
        self,
        period: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        *,
        today: date | None = None,
    ) -> PeriodSummary:
        label, window = resolve_period(period, from_date, to_date, today=today)
        return self.memo.get(label, window.start, window.end, self._sources(window))

    def ledger(self, from_date: date | None = None, to_date: date | None = None) -> LedgerListResponse:
        if from_date is None and to_date is None:
            window = period_range("month")
        else:
            default = period_range("month")
            window = checked_range(from_date or default.start, to_date or default.end)
        key = LEDGER_KEY + (window.start.isoformat(), window.end.isoformat())
        return self.cache.fetch(key, lambda: self._ledger_response(window))

    def _ledger_response(self, window: DateRange) -> LedgerListResponse:
        sources = self._sources(window)
        entries = {str(row.id): row for row in self._manual_entries(window)}
        rows = []
        for row in build_ledger_rows(sources, window.start, window.end):
            if isinstance(row, ManualRow):
                entry = entries.get(row.entry.id)
                if entry is not None:
                    rows.append(ManualLedgerRow(entry=LedgerEntryRead.model_validate(entry)))
                continue
            rows.append(
                DerivedLedgerRow(
                    type=row.type,
                    source=row.source,
                    source_id=row.source_id,
                    entry_date=row.date,
                    amount=row.amount,
                    description=row.description,
                )
            )
        return LedgerListResponse(from_date=window.start, to_date=window.end, rows=rows)

    def _manual_entries(self, window: DateRange) -> list[LedgerEntry]:
        q = select(LedgerEntry).where(
            LedgerEntry.tenant_id == self.tenant_id,
            LedgerEntry.entry_date >= window.start,
            LedgerEntry.entry_date <= window.end,
        )
        return self.db.execute(q).scalars().all()

    def get_entry(self, entry_id: UUID) -> LedgerEntry:
        row = self.db.execute(
            select(LedgerEntry).where(LedgerEntry.id == entry_id, LedgerEntry.tenant_id == self.tenant_id)
        ).scalars().one_or_none()
        if not row:
            raise NotFoundError(f"Ledger entry not found: {entry_id}")
        return row

    def add_entry(self, payload: LedgerEntryCreate) -> LedgerEntry:
        row = LedgerEntry(
            tenant_id=self.tenant_id,
            type=payload.type,
            frequency=payload.frequency,
            source=payload.source,
            description=payload.description.strip(),
            amount=payload.amount,
            entry_date=payload.entry_date,
            notes=payload.notes,
            created_by=self.user_id,
        )
        self.db.add(row)
        self._commit("ledger_entry_create", row)
        return row

    def update_entry(self, entry_id: UUID, patch: LedgerEntryUpdate) -> LedgerEntry:
        row = self.get_entry(entry_id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            if value is None and field != "notes":
                continue
            if field == "description":
                value = value.strip()
            setattr(row, field, value)
        self._commit("ledger_entry_update", row)
        return row

    def delete_entry(self, entry_id: UUID) -> None:
        row = self.get_entry(entry_id)
        self.db.delete(row)
        self._commit("ledger_entry_delete", row)

    def _commit(self, action: str, row: LedgerEntry) -> None:
        entry_id = row.id
        try:
            self.db.flush()
            entry_id = row.id
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("%s_failed tenant=%s entry=%s", action, self.tenant_id, entry_id)
            raise PersistenceError(f"Could not save ledger entry: {exc.__class__.__name__}") from exc
        logger.info(
            "%s tenant=%s entry=%s type=%s amount=%s",
            action,
            self.tenant_id,
            entry_id,
            row.type.value,
            row.amount,
        )
        self.invalidate()

    def invalidate(self) -> None:
        self.cache.invalidate(LEDGER_KEY)
        self.cache.invalidate(ACCOUNTING_SUMMARY_KEY)
        # month revenue on the dashboard reads the summary
        self.cache.invalidate(DASHBOARD_STATS_KEY)
