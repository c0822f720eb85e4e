from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_clients: int = 0
    total_animals: int = 0
    total_consultations: int = 0
    total_appointments: int = 0
    consultations_this_month: int = 0
    consultations_previous_month: int = 0
    consultations_change: str = "0%"
    consultations_today: int = 0
    appointments_today: int = 0
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    stock_value: Decimal = Decimal("0")
    month: str
    month_revenue: Decimal = Decimal("0")
    month_expenses: Decimal = Decimal("0")
    month_net_income: Decimal = Decimal("0")
