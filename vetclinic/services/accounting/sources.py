from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class ServiceRecord:
    """Read-only view of a consultation, vaccination, antiparasitic or prescription."""

    id: str
    date: date | None
    cost: Decimal | None = None
    label: str = ""


@dataclass(frozen=True)
class StockMovementRecord:
    id: str
    item_id: str
    type: str
    quantity: Decimal
    date: date | None
    reason: str = ""
    unit_cost: Decimal | None = None
    item_name: str = ""
    reference: str | None = None


@dataclass(frozen=True)
class LedgerRecord:
    id: str
    type: str
    source: str
    amount: Decimal
    date: date | None
    description: str = ""
    frequency: str = "occasional"
    notes: str | None = None


@dataclass(frozen=True)
class SourceCollections:
    """Immutable snapshot of every collection the period summary reads."""

    consultations: tuple[ServiceRecord, ...] = ()
    vaccinations: tuple[ServiceRecord, ...] = ()
    antiparasitics: tuple[ServiceRecord, ...] = ()
    prescriptions: tuple[ServiceRecord, ...] = ()
    stock_movements: tuple[StockMovementRecord, ...] = ()
    ledger_entries: tuple[LedgerRecord, ...] = ()

    @classmethod
    def of(cls, **collections) -> "SourceCollections":
        return cls(**{name: tuple(rows or ()) for name, rows in collections.items()})
