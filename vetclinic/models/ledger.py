from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, Numeric, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from vetclinic.db.base import Base


class LedgerType(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class LedgerFrequency(str, enum.Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"
    OCCASIONAL = "occasional"


class LedgerSource(str, enum.Enum):
    SALARY = "salary"
    RENT = "rent"
    TAX = "tax"
    INSURANCE = "insurance"
    OTHER = "other"
    CONSULTATION = "consultation"
    VACCINATION = "vaccination"
    ANTIPARASITIC = "antiparasitic"
    PRESCRIPTION = "prescription"
    STOCK_PURCHASE = "stock_purchase"


class LedgerEntry(Base):
    """Manually entered revenue or expense. Service-derived amounts are never stored here."""

    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[LedgerType] = mapped_column(Enum(LedgerType, name="ledger_type"), index=True)
    frequency: Mapped[LedgerFrequency] = mapped_column(
        Enum(LedgerFrequency, name="ledger_frequency"), default=LedgerFrequency.OCCASIONAL
    )
    source: Mapped[LedgerSource] = mapped_column(Enum(LedgerSource, name="ledger_source"), default=LedgerSource.OTHER)
    description: Mapped[str] = mapped_column(String(512))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    entry_date: Mapped[date] = mapped_column(Date, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AccountingTemplate(Base):
    """Recurring charge/revenue suggestion that can be turned into a ledger entry."""

    __tablename__ = "accounting_templates"
    __table_args__ = (UniqueConstraint("tenant_id", "description", "frequency", "type", name="uq_template_per_tenant"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[LedgerType] = mapped_column(Enum(LedgerType, name="ledger_type"))
    frequency: Mapped[LedgerFrequency] = mapped_column(Enum(LedgerFrequency, name="ledger_frequency"))
    source: Mapped[LedgerSource] = mapped_column(Enum(LedgerSource, name="ledger_source"), default=LedgerSource.OTHER)
    description: Mapped[str] = mapped_column(String(512))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
