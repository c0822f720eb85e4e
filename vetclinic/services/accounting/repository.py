from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from vetclinic.models.ledger import AccountingTemplate, LedgerEntry
from vetclinic.models.patient import Animal
from vetclinic.models.service_record import Antiparasitic, Consultation, Prescription, Vaccination
from vetclinic.models.stock import StockItem, StockMovement
from vetclinic.services.accounting.sources import (
    LedgerRecord,
    ServiceRecord,
    SourceCollections,
    StockMovementRecord,
)


def prescription_cost(prescription: Prescription) -> Decimal:
    total = Decimal("0")
    for med in prescription.medications:
        total += Decimal(str(med.unit_cost or 0)) * Decimal(str(med.quantity or 0))
    return total


def ledger_record(row: LedgerEntry) -> LedgerRecord:
    return LedgerRecord(
        id=str(row.id),
        type=row.type.value,
        source=row.source.value,
        amount=row.amount,
        date=row.entry_date,
        description=row.description,
        frequency=row.frequency.value,
        notes=row.notes,
    )


def _animal_names(db: Session, tenant_id: str) -> dict:
    rows = db.execute(select(Animal.id, Animal.name).where(Animal.tenant_id == tenant_id)).all()
    return {animal_id: name for animal_id, name in rows}


def consultations_between(db: Session, tenant_id: str, from_date: date, to_date: date) -> list[Consultation]:
    q = (
        select(Consultation)
        .where(
            Consultation.tenant_id == tenant_id,
            Consultation.consultation_date >= from_date,
            Consultation.consultation_date <= to_date,
        )
        .order_by(Consultation.consultation_date)
    )
    return db.execute(q).scalars().all()


def vaccinations_between(db: Session, tenant_id: str, from_date: date, to_date: date) -> list[Vaccination]:
    q = (
        select(Vaccination)
        .where(
            Vaccination.tenant_id == tenant_id,
            Vaccination.date_given >= from_date,
            Vaccination.date_given <= to_date,
        )
        .order_by(Vaccination.date_given)
    )
    return db.execute(q).scalars().all()


def antiparasitics_between(db: Session, tenant_id: str, from_date: date, to_date: date) -> list[Antiparasitic]:
    q = (
        select(Antiparasitic)
        .where(
            Antiparasitic.tenant_id == tenant_id,
            Antiparasitic.date_given >= from_date,
            Antiparasitic.date_given <= to_date,
        )
        .order_by(Antiparasitic.date_given)
    )
    return db.execute(q).scalars().all()


def prescriptions_between(db: Session, tenant_id: str, from_date: date, to_date: date) -> list[Prescription]:
    q = (
        select(Prescription)
        .where(
            Prescription.tenant_id == tenant_id,
            Prescription.prescription_date >= from_date,
            Prescription.prescription_date <= to_date,
        )
        .options(selectinload(Prescription.medications))
        .order_by(Prescription.prescription_date)
    )
    return db.execute(q).scalars().unique().all()


def stock_movements_between(
    db: Session, tenant_id: str, from_date: date, to_date: date
) -> list[tuple[StockMovement, StockItem]]:
    q = (
        select(StockMovement, StockItem)
        .join(StockItem, StockItem.id == StockMovement.item_id)
        .where(
            StockMovement.tenant_id == tenant_id,
            StockMovement.movement_date >= from_date,
            StockMovement.movement_date <= to_date,
        )
        .order_by(StockMovement.movement_date, StockMovement.created_at)
    )
    return db.execute(q).all()


def ledger_entries_between(db: Session, tenant_id: str, from_date: date, to_date: date) -> list[LedgerEntry]:
    q = (
        select(LedgerEntry)
        .where(
            LedgerEntry.tenant_id == tenant_id,
            LedgerEntry.entry_date >= from_date,
            LedgerEntry.entry_date <= to_date,
        )
        .order_by(LedgerEntry.entry_date.desc(), LedgerEntry.created_at.desc())
    )
    return db.execute(q).scalars().all()


def load_sources(db: Session, tenant_id: str, from_date: date, to_date: date) -> SourceCollections:
    """Snapshot every collection the period summary needs for one tenant and window."""
    names = _animal_names(db, tenant_id)
    consultations = [
        ServiceRecord(id=str(c.id), date=c.consultation_date, cost=c.cost, label=names.get(c.animal_id, ""))
        for c in consultations_between(db, tenant_id, from_date, to_date)
    ]
    vaccinations = [
        ServiceRecord(id=str(v.id), date=v.date_given, cost=v.cost, label=v.vaccine_name)
        for v in vaccinations_between(db, tenant_id, from_date, to_date)
    ]
    antiparasitics = [
        ServiceRecord(id=str(a.id), date=a.date_given, cost=a.cost, label=a.product_name)
        for a in antiparasitics_between(db, tenant_id, from_date, to_date)
    ]
    prescriptions = [
        ServiceRecord(id=str(p.id), date=p.prescription_date, cost=prescription_cost(p), label=names.get(p.animal_id, ""))
        for p in prescriptions_between(db, tenant_id, from_date, to_date)
    ]
    movements = [
        StockMovementRecord(
            id=str(mv.id),
            item_id=str(item.id),
            type=mv.movement_type.value,
            quantity=mv.quantity,
            date=mv.movement_date,
            reason=mv.reason,
            unit_cost=item.purchase_price,
            item_name=item.name,
            reference=mv.reference,
        )
        for mv, item in stock_movements_between(db, tenant_id, from_date, to_date)
    ]
    ledger = [ledger_record(row) for row in ledger_entries_between(db, tenant_id, from_date, to_date)]
    return SourceCollections.of(
        consultations=consultations,
        vaccinations=vaccinations,
        antiparasitics=antiparasitics,
        prescriptions=prescriptions,
        stock_movements=movements,
        ledger_entries=ledger,
    )


def list_templates(db: Session, tenant_id: str, *, active_only: bool = True) -> list[AccountingTemplate]:
    q = select(AccountingTemplate).where(AccountingTemplate.tenant_id == tenant_id)
    if active_only:
        q = q.where(AccountingTemplate.is_active.is_(True))
    q = q.order_by(AccountingTemplate.frequency, AccountingTemplate.description)
    return db.execute(q).scalars().all()
