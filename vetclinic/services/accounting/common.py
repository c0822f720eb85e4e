from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from vetclinic.core.errors import InvalidRangeError

logger = logging.getLogger("vetclinic.accounting")

ZERO = Decimal("0")

DAY = "day"
MONTH = "month"
QUARTER = "quarter"
YEAR = "year"
CUSTOM = "custom"

PERIOD_KINDS = (DAY, MONTH, QUARTER, YEAR, CUSTOM)


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, value: date | None) -> bool:
        return value is not None and self.start <= value <= self.end


def as_date(value: date | datetime | str | None) -> date | None:
    """Calendar date of a date, datetime or ISO string; time of day is dropped."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return date.fromisoformat(text[:10])


def checked_range(start: date | datetime | str, end: date | datetime | str) -> DateRange:
    start_d = as_date(start)
    end_d = as_date(end)
    if start_d is None or end_d is None:
        raise InvalidRangeError(start, end)
    if start_d > end_d:
        raise InvalidRangeError(start_d, end_d)
    return DateRange(start=start_d, end=end_d)


def money(value, *, field: str = "amount", record_id=None) -> Decimal:
    """
    Coerce a stored amount to a non-negative Decimal.
    None counts as zero; NaN and negative values are logged and counted as zero.
    """
    if value is None:
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning("unparseable_amount field=%s record=%s value=%r", field, record_id, value)
        return ZERO
    if amount.is_nan():
        logger.warning("nan_amount field=%s record=%s", field, record_id)
        return ZERO
    if amount < 0:
        logger.warning("negative_amount_clamped field=%s record=%s value=%s", field, record_id, amount)
        return ZERO
    return amount


def period_range(kind: str, *, today: date | None = None) -> DateRange:
    now = today or date.today()
    k = (kind or "").strip().lower()
    if k == DAY:
        return DateRange(now, now)
    if k == MONTH:
        last_day = calendar.monthrange(now.year, now.month)[1]
        return DateRange(now.replace(day=1), now.replace(day=last_day))
    if k == QUARTER:
        first_month = ((now.month - 1) // 3) * 3 + 1
        last_month = first_month + 2
        last_day = calendar.monthrange(now.year, last_month)[1]
        return DateRange(date(now.year, first_month, 1), date(now.year, last_month, last_day))
    if k == YEAR:
        return DateRange(date(now.year, 1, 1), date(now.year, 12, 31))
    # custom without bounds: last 30 days
    return DateRange(now - timedelta(days=30), now)


def period_label(kind: str, start: date, end: date) -> str:
    k = (kind or "").strip().lower()
    if k == MONTH:
        return start.strftime("%Y-%m")
    if k == YEAR:
        return start.strftime("%Y")
    if k == DAY:
        return start.strftime("%d/%m/%Y")
    if k == QUARTER:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    return f"{start.strftime('%d/%m/%Y')} - {end.strftime('%d/%m/%Y')}"
