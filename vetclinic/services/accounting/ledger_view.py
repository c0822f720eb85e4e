from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from vetclinic.core.config import settings
from vetclinic.models.ledger import LedgerSource, LedgerType
from vetclinic.services.accounting.common import checked_range, money
from vetclinic.services.accounting.sources import LedgerRecord, SourceCollections
from vetclinic.services.accounting.summary_engine import is_stock_purchase, stock_purchase_cost


@dataclass(frozen=True)
class ManualRow:
    entry: LedgerRecord

    @property
    def date(self) -> date | None:
        return self.entry.date


@dataclass(frozen=True)
class DerivedRow:
    """Amount computed from a source record; exists only for display."""

    type: str
    source: str
    source_id: str
    date: date
    amount: Decimal
    description: str


LedgerRow = ManualRow | DerivedRow

_SERVICE_SOURCES = (
    ("consultations", LedgerSource.CONSULTATION, "Consultation"),
    ("vaccinations", LedgerSource.VACCINATION, "Vaccination"),
    ("antiparasitics", LedgerSource.ANTIPARASITIC, "Antiparasitaire"),
    ("prescriptions", LedgerSource.PRESCRIPTION, "Prescription"),
)


def derived_rows(
    sources: SourceCollections,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
    *,
    purchase_reason: str | None = None,
) -> list[DerivedRow]:
    window = checked_range(start_date, end_date)
    reason = settings.stock_purchase_reason if purchase_reason is None else purchase_reason
    out: list[DerivedRow] = []
    for attr, source, prefix in _SERVICE_SOURCES:
        for rec in getattr(sources, attr):
            if not window.contains(rec.date):
                continue
            amount = money(rec.cost, field=f"{source.value}.cost", record_id=rec.id)
            if amount <= 0:
                continue
            out.append(
                DerivedRow(
                    type=LedgerType.REVENUE.value,
                    source=source.value,
                    source_id=rec.id,
                    date=rec.date,
                    amount=amount,
                    description=f"{prefix} - {rec.label}" if rec.label else prefix,
                )
            )
    for mv in sources.stock_movements:
        if not (window.contains(mv.date) and is_stock_purchase(mv, reason)):
            continue
        amount = stock_purchase_cost(mv)
        if amount <= 0:
            continue
        out.append(
            DerivedRow(
                type=LedgerType.EXPENSE.value,
                source=LedgerSource.STOCK_PURCHASE.value,
                source_id=mv.id,
                date=mv.date,
                amount=amount,
                description=f"Achat stock - {mv.item_name}" if mv.item_name else "Achat stock",
            )
        )
    return out


def build_ledger_rows(
    sources: SourceCollections,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
    *,
    purchase_reason: str | None = None,
) -> list[LedgerRow]:
    """Manual entries and derived amounts in range, newest first."""
    window = checked_range(start_date, end_date)
    rows: list[LedgerRow] = [ManualRow(entry) for entry in sources.ledger_entries if window.contains(entry.date)]
    rows.extend(derived_rows(sources, window.start, window.end, purchase_reason=purchase_reason))
    rows.sort(key=lambda r: (r.date, r.entry.id if isinstance(r, ManualRow) else r.source_id), reverse=True)
    return rows
