from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field

from vetclinic.models.ledger import LedgerFrequency, LedgerSource, LedgerType

ZERO = Decimal("0")


class RevenueBreakdown(BaseModel):
    consultations: Decimal = ZERO
    vaccinations: Decimal = ZERO
    antiparasitics: Decimal = ZERO
    prescriptions: Decimal = ZERO
    manual_entries: Decimal = ZERO

    def total(self) -> Decimal:
        return self.consultations + self.vaccinations + self.antiparasitics + self.prescriptions + self.manual_entries


class ExpenseBreakdown(BaseModel):
    stock_purchases: Decimal = ZERO
    salaries: Decimal = ZERO
    rent: Decimal = ZERO
    taxes: Decimal = ZERO
    other: Decimal = ZERO

    def total(self) -> Decimal:
        return self.stock_purchases + self.salaries + self.rent + self.taxes + self.other


class PeriodSummary(BaseModel):
    period: str
    from_date: date = Field(alias="from")
    to_date: date = Field(alias="to")
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    revenue_breakdown: RevenueBreakdown
    expense_breakdown: ExpenseBreakdown

    model_config = {"populate_by_name": True}


class LedgerEntryCreate(BaseModel):
    type: LedgerType
    frequency: LedgerFrequency = LedgerFrequency.OCCASIONAL
    source: LedgerSource = LedgerSource.OTHER
    description: str = Field(..., min_length=1, max_length=512)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    entry_date: date
    notes: str | None = None

    model_config = {"str_strip_whitespace": True}


class LedgerEntryUpdate(BaseModel):
    type: LedgerType | None = None
    frequency: LedgerFrequency | None = None
    source: LedgerSource | None = None
    description: str | None = Field(default=None, min_length=1, max_length=512)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    entry_date: date | None = None
    notes: str | None = None

    model_config = {"str_strip_whitespace": True}


class LedgerEntryRead(LedgerEntryCreate):
    id: UUID
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ManualLedgerRow(BaseModel):
    kind: Literal["manual"] = "manual"
    entry: LedgerEntryRead


class DerivedLedgerRow(BaseModel):
    kind: Literal["derived"] = "derived"
    type: LedgerType = LedgerType.REVENUE
    source: LedgerSource
    source_id: str
    entry_date: date
    amount: Decimal
    description: str


LedgerRow = Annotated[Union[ManualLedgerRow, DerivedLedgerRow], Field(discriminator="kind")]


class LedgerListResponse(BaseModel):
    from_date: date = Field(alias="from")
    to_date: date = Field(alias="to")
    rows: list[LedgerRow]

    model_config = {"populate_by_name": True}


class AccountingTemplateCreate(BaseModel):
    type: LedgerType
    frequency: LedgerFrequency
    source: LedgerSource = LedgerSource.OTHER
    description: str = Field(..., min_length=1, max_length=512)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    is_active: bool = True

    model_config = {"str_strip_whitespace": True}


class AccountingTemplateUpdate(BaseModel):
    type: LedgerType | None = None
    frequency: LedgerFrequency | None = None
    source: LedgerSource | None = None
    description: str | None = Field(default=None, min_length=1, max_length=512)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_active: bool | None = None

    model_config = {"str_strip_whitespace": True}


class AccountingTemplateRead(AccountingTemplateCreate):
    id: UUID

    model_config = {"from_attributes": True}


class TemplateGroups(BaseModel):
    monthly: list[AccountingTemplateRead] = Field(default_factory=list)
    annual: list[AccountingTemplateRead] = Field(default_factory=list)
    occasional: list[AccountingTemplateRead] = Field(default_factory=list)


class TemplateApplyRequest(BaseModel):
    entry_date: date
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    notes: str | None = None
