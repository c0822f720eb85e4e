from vetclinic.models.ledger import AccountingTemplate, LedgerEntry, LedgerFrequency, LedgerSource, LedgerType
from vetclinic.models.patient import Animal, Appointment, Client
from vetclinic.models.service_record import (
    Antiparasitic,
    Consultation,
    Prescription,
    PrescriptionMedication,
    Vaccination,
)
from vetclinic.models.stock import StockCategory, StockItem, StockMovement, StockMovementType, StockUnit

__all__ = [
    "AccountingTemplate",
    "Animal",
    "Antiparasitic",
    "Appointment",
    "Client",
    "Consultation",
    "LedgerEntry",
    "LedgerFrequency",
    "LedgerSource",
    "LedgerType",
    "Prescription",
    "PrescriptionMedication",
    "StockCategory",
    "StockItem",
    "StockMovement",
    "StockMovementType",
    "StockUnit",
    "Vaccination",
]
