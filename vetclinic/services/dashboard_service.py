from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vetclinic.models.patient import Animal, Appointment, Client
from vetclinic.models.service_record import Consultation
from vetclinic.models.stock import StockItem
from vetclinic.schemas.dashboard import DashboardStats
from vetclinic.services.accounting.common import MONTH, period_range
from vetclinic.services.accounting.ledger_service import AccountingService
from vetclinic.services.realtime.query_cache import QueryCache
from vetclinic.services.realtime.router import DASHBOARD_STATS_KEY

CLOSED_APPOINTMENT_STATUSES = ("cancelled", "completed")


def change_percentage(current: int, previous: int) -> str:
    if previous == 0:
        return "+100%" if current > 0 else "0%"
    change = round((current - previous) / previous * 100)
    return f"+{change}%" if change >= 0 else f"{change}%"


class DashboardService:
    def __init__(self, db: Session, tenant_id: str, *, cache: QueryCache | None = None, accounting: AccountingService | None = None):
        self.db = db
        self.tenant_id = tenant_id
        self.cache = cache if cache is not None else QueryCache()
        self.accounting = accounting or AccountingService(db, tenant_id, cache=self.cache)

    def stats(self, today: date | None = None) -> DashboardStats:
        day = today or date.today()
        return self.cache.fetch(DASHBOARD_STATS_KEY + (day.isoformat(),), lambda: self._compute(day))

    def _count(self, model, *conditions) -> int:
        q = select(func.count(model.id)).where(model.tenant_id == self.tenant_id, *conditions)
        return int(self.db.execute(q).scalar() or 0)

    def _compute(self, day: date) -> DashboardStats:
        month = period_range(MONTH, today=day)
        previous = period_range(MONTH, today=month.start - timedelta(days=1))
        day_start = datetime.combine(day, time.min)
        day_end = datetime.combine(day, time.max)

        items = self.db.execute(
            select(StockItem.current_stock, StockItem.minimum_stock, StockItem.purchase_price).where(
                StockItem.tenant_id == self.tenant_id, StockItem.is_active.is_(True)
            )
        ).all()
        low_stock = sum(1 for current, minimum, _ in items if (current or 0) <= (minimum or 0))
        out_of_stock = sum(1 for current, _, _ in items if (current or 0) == 0)
        stock_value = sum((Decimal(current or 0) * Decimal(str(price or 0)) for current, _, price in items), Decimal("0"))

        this_month = self._count(
            Consultation, Consultation.consultation_date >= month.start, Consultation.consultation_date <= month.end
        )
        last_month = self._count(
            Consultation, Consultation.consultation_date >= previous.start, Consultation.consultation_date <= previous.end
        )
        summary = self.accounting.summary(MONTH, today=day)
        return DashboardStats(
            total_clients=self._count(Client),
            total_animals=self._count(Animal),
            total_consultations=self._count(Consultation),
            total_appointments=self._count(Appointment),
            consultations_this_month=this_month,
            consultations_previous_month=last_month,
            consultations_change=change_percentage(this_month, last_month),
            consultations_today=self._count(Consultation, Consultation.consultation_date == day),
            appointments_today=self._count(
                Appointment,
                Appointment.scheduled_at >= day_start,
                Appointment.scheduled_at <= day_end,
                Appointment.status.not_in(CLOSED_APPOINTMENT_STATUSES),
            ),
            low_stock_items=low_stock,
            out_of_stock_items=out_of_stock,
            stock_value=stock_value,
            month=summary.period,
            month_revenue=summary.total_revenue,
            month_expenses=summary.total_expenses,
            month_net_income=summary.net_income,
        )
