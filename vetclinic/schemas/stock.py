from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from vetclinic.models.stock import StockCategory, StockUnit


class StockItemRead(BaseModel):
    id: UUID
    name: str
    category: StockCategory
    subcategory: str | None = None
    manufacturer: str | None = None
    batch_number: str | None = None
    dosage: str | None = None
    unit: StockUnit
    current_stock: int = 0
    minimum_stock: int = 0
    purchase_price: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    expiration_date: date | None = None
    supplier: str | None = None
    location: str | None = None
    notes: str | None = None
    barcode: str | None = None
    sku: str | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class StockImportRowError(BaseModel):
    line: int
    reason: str


class StockImportResult(BaseModel):
    imported: int = 0
    errors: int = 0
    error_rows: list[StockImportRowError] = Field(default_factory=list)
    items: list[StockItemRead] = Field(default_factory=list)
