"""
Accounting templates: recurring charges and revenues a clinic enters every
month, every year or occasionally. Each tenant starts with the clinic
defaults; applying a template books a manual ledger entry from it.
"""
from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vetclinic.core.errors import ConflictError, NotFoundError, PersistenceError
from vetclinic.models.ledger import AccountingTemplate, LedgerEntry, LedgerFrequency, LedgerSource, LedgerType
from vetclinic.schemas.accounting import (
    AccountingTemplateCreate,
    AccountingTemplateRead,
    AccountingTemplateUpdate,
    LedgerEntryCreate,
    TemplateApplyRequest,
    TemplateGroups,
)
from vetclinic.services.accounting.common import logger
from vetclinic.services.accounting.ledger_service import AccountingService
from vetclinic.services.accounting.repository import list_templates

# (description, amount, source, frequency)
DEFAULT_TEMPLATES = [
    ("Salaire Secrétaire", "3000", LedgerSource.SALARY, LedgerFrequency.MONTHLY),
    ("CNSS Secrétaire", "700", LedgerSource.INSURANCE, LedgerFrequency.MONTHLY),
    ("CNSS Vétérinaire", "1500", LedgerSource.INSURANCE, LedgerFrequency.MONTHLY),
    ("Loyer", "3000", LedgerSource.RENT, LedgerFrequency.MONTHLY),
    ("Eau et Électricité", "300", LedgerSource.OTHER, LedgerFrequency.MONTHLY),
    ("Impôts", "3000", LedgerSource.TAX, LedgerFrequency.ANNUAL),
    ("Cotisation Ordre des Vétérinaires", "1200", LedgerSource.OTHER, LedgerFrequency.ANNUAL),
    ("Maintenance Équipement", "500", LedgerSource.OTHER, LedgerFrequency.OCCASIONAL),
    ("Formation Professionnelle", "800", LedgerSource.OTHER, LedgerFrequency.OCCASIONAL),
    ("Achat Matériel", "1200", LedgerSource.OTHER, LedgerFrequency.OCCASIONAL),
]


def seed_default_templates(db: Session, tenant_id: str) -> int:
    """Insert the default expense templates for a tenant that has none. Returns rows created."""
    count = db.execute(
        select(func.count(AccountingTemplate.id)).where(AccountingTemplate.tenant_id == tenant_id)
    ).scalar()
    if count:
        return 0
    for description, amount, source, frequency in DEFAULT_TEMPLATES:
        db.add(
            AccountingTemplate(
                tenant_id=tenant_id,
                type=LedgerType.EXPENSE,
                frequency=frequency,
                source=source,
                description=description,
                amount=Decimal(amount),
            )
        )
    db.commit()
    logger.info("templates_seeded tenant=%s count=%s", tenant_id, len(DEFAULT_TEMPLATES))
    return len(DEFAULT_TEMPLATES)


def group_templates(rows) -> TemplateGroups:
    groups = TemplateGroups()
    for row in rows:
        getattr(groups, row.frequency.value).append(AccountingTemplateRead.model_validate(row))
    return groups


class TemplateService:
    def __init__(self, db: Session, tenant_id: str, *, accounting: AccountingService | None = None):
        self.db = db
        self.tenant_id = tenant_id
        self.accounting = accounting or AccountingService(db, tenant_id)

    def grouped(self, *, include_inactive: bool = False) -> TemplateGroups:
        seed_default_templates(self.db, self.tenant_id)
        return group_templates(list_templates(self.db, self.tenant_id, active_only=not include_inactive))

    def get(self, template_id: UUID) -> AccountingTemplate:
        row = self.db.execute(
            select(AccountingTemplate).where(
                AccountingTemplate.id == template_id, AccountingTemplate.tenant_id == self.tenant_id
            )
        ).scalars().one_or_none()
        if not row:
            raise NotFoundError(f"Template not found: {template_id}")
        return row

    def add(self, payload: AccountingTemplateCreate) -> AccountingTemplate:
        description = payload.description.strip()
        row = self.db.execute(
            select(AccountingTemplate).where(
                AccountingTemplate.tenant_id == self.tenant_id,
                AccountingTemplate.description == description,
                AccountingTemplate.frequency == payload.frequency,
                AccountingTemplate.type == payload.type,
            )
        ).scalars().one_or_none()
        # same (description, frequency, type) updates the existing template
        if row is None:
            row = AccountingTemplate(tenant_id=self.tenant_id, description=description)
            self.db.add(row)
        row.type = payload.type
        row.frequency = payload.frequency
        row.source = payload.source
        row.amount = payload.amount
        row.is_active = payload.is_active
        self._commit("template_upsert")
        return row

    def update(self, template_id: UUID, patch: AccountingTemplateUpdate) -> AccountingTemplate:
        row = self.get(template_id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if field == "description":
                value = value.strip()
            setattr(row, field, value)
        self._commit("template_update")
        return row

    def delete(self, template_id: UUID) -> None:
        row = self.get(template_id)
        self.db.delete(row)
        self._commit("template_delete")

    def apply(self, template_id: UUID, payload: TemplateApplyRequest) -> LedgerEntry:
        tpl = self.get(template_id)
        entry = LedgerEntryCreate(
            type=tpl.type,
            frequency=tpl.frequency,
            source=tpl.source,
            description=tpl.description,
            amount=tpl.amount if payload.amount is None else payload.amount,
            entry_date=payload.entry_date,
            notes=payload.notes,
        )
        logger.info("template_applied tenant=%s template=%s date=%s", self.tenant_id, tpl.id, payload.entry_date)
        return self.accounting.add_entry(entry)

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("%s_conflict tenant=%s", action, self.tenant_id)
            raise ConflictError("A template with the same description, frequency and type already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("%s_failed tenant=%s", action, self.tenant_id)
            raise PersistenceError(f"Could not save template: {exc.__class__.__name__}") from exc
        logger.info("%s tenant=%s", action, self.tenant_id)
