from __future__ import annotations

from datetime import date
from decimal import Decimal

import vetclinic.models  # noqa: F401 - register models with Base.metadata
from vetclinic.db.base import Base
from vetclinic.db.session import SessionLocal, engine
from vetclinic.models import (
    Animal,
    Antiparasitic,
    Client,
    Consultation,
    LedgerEntry,
    LedgerSource,
    LedgerType,
    Prescription,
    PrescriptionMedication,
    StockCategory,
    StockItem,
    StockMovement,
    StockMovementType,
    StockUnit,
    Vaccination,
)

TENANT = "clinic-1"


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def seed_march(db, tenant_id: str = TENANT) -> dict:
    """One of every source record in March 2024 for a single animal."""
    client = Client(tenant_id=tenant_id, first_name="Salma", last_name="Idrissi")
    db.add(client)
    db.flush()
    animal = Animal(tenant_id=tenant_id, client_id=client.id, name="Rex", species="chien")
    db.add(animal)
    db.flush()
    common = {"tenant_id": tenant_id, "client_id": client.id, "animal_id": animal.id}
    consultation = Consultation(consultation_date=date(2024, 3, 15), cost=Decimal("200"), **common)
    vaccination = Vaccination(vaccine_name="Rage", date_given=date(2024, 3, 12), cost=Decimal("80"), **common)
    antiparasitic = Antiparasitic(
        product_name="Frontline", date_given=date(2024, 3, 20), cost=Decimal("45"), **common
    )
    prescription = Prescription(prescription_date=date(2024, 3, 15), **common)
    prescription.medications = [
        PrescriptionMedication(name="Amoxicilline", quantity=Decimal("2"), unit_cost=Decimal("25.50")),
        PrescriptionMedication(name="Vermifuge", quantity=Decimal("1"), unit_cost=None),
    ]
    item = StockItem(
        tenant_id=tenant_id,
        name="Seringues 5ml",
        category=StockCategory.CONSUMABLE,
        unit=StockUnit.UNIT,
        current_stock=100,
        minimum_stock=20,
        purchase_price=Decimal("0.50"),
        selling_price=Decimal("0.75"),
    )
    db.add_all([consultation, vaccination, antiparasitic, prescription, item])
    db.flush()
    db.add_all(
        [
            StockMovement(
                tenant_id=tenant_id,
                item_id=item.id,
                movement_type=StockMovementType.IN,
                quantity=Decimal("40"),
                reason="Achat fournisseur",
                movement_date=date(2024, 3, 5),
            ),
            StockMovement(
                tenant_id=tenant_id,
                item_id=item.id,
                movement_type=StockMovementType.OUT,
                quantity=Decimal("3"),
                reason="Consultation",
                movement_date=date(2024, 3, 15),
            ),
            LedgerEntry(
                tenant_id=tenant_id,
                type=LedgerType.EXPENSE,
                source=LedgerSource.RENT,
                description="Loyer",
                amount=Decimal("3000"),
                entry_date=date(2024, 3, 10),
            ),
        ]
    )
    db.commit()
    return {"client": client, "animal": animal, "consultation": consultation, "item": item}


def new_session():
    return SessionLocal()
