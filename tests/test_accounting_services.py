from __future__ import annotations

import unittest
import uuid
from datetime import date
from decimal import Decimal
from unittest import mock

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from tests.fixtures import TENANT, new_session, reset_db, seed_march
from vetclinic.core.errors import ConflictError, InvalidRangeError, NotFoundError, PersistenceError
from vetclinic.models import LedgerFrequency, LedgerSource, LedgerType
from vetclinic.schemas.accounting import (
    AccountingTemplateCreate,
    AccountingTemplateUpdate,
    DerivedLedgerRow,
    LedgerEntryCreate,
    LedgerEntryUpdate,
    ManualLedgerRow,
    TemplateApplyRequest,
)
from vetclinic.services.accounting.ledger_service import AccountingService, resolve_period
from vetclinic.services.accounting.repository import load_sources
from vetclinic.services.accounting.summary_engine import generate_summary
from vetclinic.services.accounting.template_service import DEFAULT_TEMPLATES, TemplateService
from vetclinic.services.realtime.query_cache import QueryCache


class RepositoryTests(unittest.TestCase):
    def setUp(self):
        reset_db()
        self.db = new_session()
        seed_march(self.db)
        seed_march(self.db, tenant_id="clinic-2")

    def tearDown(self):
        self.db.close()

    def test_load_sources_is_scoped_to_tenant_and_window(self):
        sources = load_sources(self.db, TENANT, date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(len(sources.consultations), 1)
        self.assertEqual(len(sources.stock_movements), 2)
        self.assertEqual(len(sources.ledger_entries), 1)
        self.assertEqual(sources.consultations[0].label, "Rex")
        empty = load_sources(self.db, TENANT, date(2024, 4, 1), date(2024, 4, 30))
        self.assertEqual(empty.consultations, ())

    def test_prescription_cost_sums_medication_lines(self):
        sources = load_sources(self.db, TENANT, date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(sources.prescriptions[0].cost, Decimal("51"))

    def test_summary_over_database_records(self):
        sources = load_sources(self.db, TENANT, date(2024, 3, 1), date(2024, 3, 31))
        s = generate_summary("2024-03", date(2024, 3, 1), date(2024, 3, 31), sources)
        self.assertEqual(s.total_revenue, Decimal("376"))
        self.assertEqual(s.expense_breakdown.stock_purchases, Decimal("20"))
        self.assertEqual(s.expense_breakdown.rent, Decimal("3000"))
        self.assertEqual(s.net_income, Decimal("-2644"))


class AccountingServiceTests(unittest.TestCase):
    def setUp(self):
        reset_db()
        self.db = new_session()
        seed_march(self.db)
        self.cache = QueryCache()
        self.service = AccountingService(self.db, TENANT, cache=self.cache, user_id="user-1")

    def tearDown(self):
        self.db.close()

    def _payload(self, **overrides):
        data = {
            "type": LedgerType.EXPENSE,
            "frequency": LedgerFrequency.MONTHLY,
            "source": LedgerSource.SALARY,
            "description": "Salaire Secrétaire",
            "amount": Decimal("3000"),
            "entry_date": date(2024, 3, 28),
        }
        data.update(overrides)
        return LedgerEntryCreate(**data)

    def test_summary_uses_period_and_explicit_bounds(self):
        s = self.service.summary("month", today=date(2024, 3, 18))
        self.assertEqual(s.period, "2024-03")
        self.assertEqual(s.revenue_breakdown.consultations, Decimal("200"))
        custom = self.service.summary("custom", date(2024, 3, 1), date(2024, 3, 14))
        self.assertEqual(custom.period, "01/03/2024 - 14/03/2024")
        self.assertEqual(custom.revenue_breakdown.consultations, 0)

    def test_resolve_period_rejects_inverted_range(self):
        with self.assertRaises(InvalidRangeError):
            resolve_period("custom", date(2024, 3, 31), date(2024, 3, 1))

    def test_add_entry_invalidates_ledger_and_summary(self):
        before = self.service.summary("custom", date(2024, 3, 1), date(2024, 3, 31))
        self.service.ledger(date(2024, 3, 1), date(2024, 3, 31))
        row = self.service.add_entry(self._payload())
        self.assertEqual(row.created_by, "user-1")
        self.assertTrue(all(self.cache.peek(k).stale for k in self.cache.keys()))
        after = self.service.summary("custom", date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(after.expense_breakdown.salaries - before.expense_breakdown.salaries, Decimal("3000"))

    def test_ledger_lists_manual_and_derived_rows(self):
        self.service.add_entry(self._payload())
        listing = self.service.ledger(date(2024, 3, 1), date(2024, 3, 31))
        manual = [r for r in listing.rows if isinstance(r, ManualLedgerRow)]
        derived = [r for r in listing.rows if isinstance(r, DerivedLedgerRow)]
        self.assertEqual(sorted(r.entry.description for r in manual), ["Loyer", "Salaire Secrétaire"])
        self.assertIn("stock_purchase", {r.source.value for r in derived})
        self.assertEqual(listing.rows[0].entry.entry_date, date(2024, 3, 28))

    def test_update_and_delete(self):
        row = self.service.add_entry(self._payload())
        updated = self.service.update_entry(row.id, LedgerEntryUpdate(amount=Decimal("3200"), notes="prime"))
        self.assertEqual(updated.amount, Decimal("3200"))
        self.assertEqual(updated.notes, "prime")
        self.assertEqual(updated.description, "Salaire Secrétaire")
        self.service.delete_entry(row.id)
        with self.assertRaises(NotFoundError):
            self.service.get_entry(row.id)

    def test_blank_description_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._payload(description="   ")
        with self.assertRaises(ValidationError):
            LedgerEntryUpdate(description="\t ")
        with self.assertRaises(ValidationError):
            AccountingTemplateCreate(
                type=LedgerType.EXPENSE, frequency=LedgerFrequency.MONTHLY, description=" ", amount=Decimal("1")
            )
        self.assertEqual(self._payload(description="  Loyer ").description, "Loyer")

    def test_unknown_or_foreign_entry_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.delete_entry(uuid.uuid4())
        row = self.service.add_entry(self._payload())
        other = AccountingService(self.db, "clinic-2")
        with self.assertRaises(NotFoundError):
            other.update_entry(row.id, LedgerEntryUpdate(amount=Decimal("1")))

    def test_persistence_failure_rolls_back(self):
        self.cache.set(("ledger", "x"), [])
        with mock.patch.object(self.db, "commit", side_effect=OperationalError("COMMIT", {}, Exception("db down"))):
            with self.assertLogs("vetclinic.accounting", level="ERROR"):
                with self.assertRaises(PersistenceError):
                    self.service.add_entry(self._payload())
        self.assertFalse(self.cache.peek(("ledger", "x")).stale)
        listing = self.service.ledger(date(2024, 3, 1), date(2024, 3, 31))
        descriptions = [r.entry.description for r in listing.rows if isinstance(r, ManualLedgerRow)]
        self.assertEqual(descriptions, ["Loyer"])


class TemplateServiceTests(unittest.TestCase):
    def setUp(self):
        reset_db()
        self.db = new_session()
        self.service = TemplateService(self.db, TENANT)

    def tearDown(self):
        self.db.close()

    def test_defaults_are_seeded_once_and_grouped(self):
        groups = self.service.grouped()
        self.assertEqual(len(groups.monthly), 5)
        self.assertEqual(len(groups.annual), 2)
        self.assertEqual(len(groups.occasional), 3)
        again = self.service.grouped()
        total = len(again.monthly) + len(again.annual) + len(again.occasional)
        self.assertEqual(total, len(DEFAULT_TEMPLATES))

    def test_add_with_same_key_updates_existing(self):
        self.service.grouped()
        payload = AccountingTemplateCreate(
            type=LedgerType.EXPENSE,
            frequency=LedgerFrequency.MONTHLY,
            source=LedgerSource.RENT,
            description="Loyer",
            amount=Decimal("3500"),
        )
        row = self.service.add(payload)
        self.assertEqual(row.amount, Decimal("3500"))
        groups = self.service.grouped()
        self.assertEqual([t.amount for t in groups.monthly if t.description == "Loyer"], [Decimal("3500.00")])

    def test_update_to_existing_key_conflicts(self):
        groups = self.service.grouped()
        loyer = next(t for t in groups.monthly if t.description == "Loyer")
        with self.assertRaises(ConflictError):
            self.service.update(loyer.id, AccountingTemplateUpdate(description="CNSS Secrétaire"))

    def test_apply_creates_manual_entry(self):
        groups = self.service.grouped()
        impots = next(t for t in groups.annual if t.description == "Impôts")
        entry = self.service.apply(impots.id, TemplateApplyRequest(entry_date=date(2024, 3, 31)))
        self.assertEqual(entry.amount, Decimal("3000"))
        self.assertEqual(entry.source, LedgerSource.TAX)
        self.assertEqual(entry.frequency, LedgerFrequency.ANNUAL)
        summary = self.service.accounting.summary("custom", date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(summary.expense_breakdown.taxes, Decimal("3000"))

    def test_delete_unknown_template(self):
        with self.assertRaises(NotFoundError):
            self.service.delete(uuid.uuid4())


if __name__ == "__main__":
    unittest.main()
