"""
Period financial summary.

Revenue comes from service records (consultations, vaccinations,
antiparasitics, prescriptions) and manual revenue entries; expenses from
supplier stock purchases and manual expense entries bucketed by source.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from vetclinic.core.config import settings
from vetclinic.models.ledger import LedgerSource, LedgerType
from vetclinic.models.stock import StockMovementType
from vetclinic.schemas.accounting import ExpenseBreakdown, PeriodSummary, RevenueBreakdown
from vetclinic.services.accounting.common import ZERO, DateRange, checked_range, money
from vetclinic.services.accounting.sources import ServiceRecord, SourceCollections, StockMovementRecord

EXPENSE_BUCKET_BY_SOURCE = {
    LedgerSource.SALARY.value: "salaries",
    LedgerSource.RENT.value: "rent",
    LedgerSource.TAX.value: "taxes",
}


def expense_bucket(source: str | None) -> str:
    return EXPENSE_BUCKET_BY_SOURCE.get((source or "").strip().lower(), "other")


def is_stock_purchase(movement: StockMovementRecord, purchase_reason: str) -> bool:
    return movement.type == StockMovementType.IN.value and (movement.reason or "").strip() == purchase_reason


def stock_purchase_cost(movement: StockMovementRecord) -> Decimal:
    quantity = money(movement.quantity, field="quantity", record_id=movement.id)
    unit_cost = money(movement.unit_cost, field="unit_cost", record_id=movement.id)
    return quantity * unit_cost


def _sum_costs(records: tuple[ServiceRecord, ...], window: DateRange, field: str) -> Decimal:
    total = ZERO
    for rec in records:
        if window.contains(rec.date):
            total += money(rec.cost, field=field, record_id=rec.id)
    return total


def generate_summary(
    period_label: str,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
    sources: SourceCollections,
    *,
    purchase_reason: str | None = None,
) -> PeriodSummary:
    """
    Aggregate every source collection over the inclusive [start_date, end_date] window.
    Raises InvalidRangeError when start_date falls after end_date.
    """
    window = checked_range(start_date, end_date)
    reason = settings.stock_purchase_reason if purchase_reason is None else purchase_reason

    revenue = RevenueBreakdown(
        consultations=_sum_costs(sources.consultations, window, "consultation.cost"),
        vaccinations=_sum_costs(sources.vaccinations, window, "vaccination.cost"),
        antiparasitics=_sum_costs(sources.antiparasitics, window, "antiparasitic.cost"),
        prescriptions=_sum_costs(sources.prescriptions, window, "prescription.cost"),
    )
    expenses = ExpenseBreakdown()

    for mv in sources.stock_movements:
        if window.contains(mv.date) and is_stock_purchase(mv, reason):
            expenses.stock_purchases += stock_purchase_cost(mv)

    for entry in sources.ledger_entries:
        if not window.contains(entry.date):
            continue
        amount = money(entry.amount, field="ledger.amount", record_id=entry.id)
        if entry.type == LedgerType.REVENUE.value:
            revenue.manual_entries += amount
        elif entry.type == LedgerType.EXPENSE.value:
            bucket = expense_bucket(entry.source)
            setattr(expenses, bucket, getattr(expenses, bucket) + amount)

    total_revenue = revenue.total()
    total_expenses = expenses.total()
    return PeriodSummary(
        period=period_label,
        from_date=window.start,
        to_date=window.end,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=total_revenue - total_expenses,
        revenue_breakdown=revenue,
        expense_breakdown=expenses,
    )


class SummaryMemo:
    """Keeps the last summary and recomputes only when an input changed, any collection included."""

    def __init__(self) -> None:
        self._key: tuple | None = None
        self._value: PeriodSummary | None = None
        self.computations = 0

    def get(
        self,
        period_label: str,
        start_date: date | datetime | str,
        end_date: date | datetime | str,
        sources: SourceCollections,
        *,
        purchase_reason: str | None = None,
    ) -> PeriodSummary:
        key = (period_label, str(start_date)[:10], str(end_date)[:10], purchase_reason, sources)
        if self._value is None or key != self._key:
            self._value = generate_summary(
                period_label, start_date, end_date, sources, purchase_reason=purchase_reason
            )
            self._key = key
            self.computations += 1
        return self._value

    def reset(self) -> None:
        self._key = None
        self._value = None
