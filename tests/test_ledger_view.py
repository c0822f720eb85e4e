from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from vetclinic.services.accounting.ledger_view import DerivedRow, ManualRow, build_ledger_rows, derived_rows
from vetclinic.services.accounting.sources import (
    LedgerRecord,
    ServiceRecord,
    SourceCollections,
    StockMovementRecord,
)


class LedgerViewTests(unittest.TestCase):
    def setUp(self):
        self.sources = SourceCollections.of(
            consultations=[
                ServiceRecord(id="c1", date=date(2024, 3, 15), cost=Decimal("200"), label="Rex"),
                ServiceRecord(id="c2", date=date(2024, 3, 16), cost=None, label="Mia"),
            ],
            vaccinations=[ServiceRecord(id="v1", date=date(2024, 3, 12), cost=Decimal("80"), label="Rage")],
            stock_movements=[
                StockMovementRecord(
                    id="m1",
                    item_id="i1",
                    type="in",
                    quantity=Decimal("4"),
                    date=date(2024, 3, 5),
                    reason="Achat fournisseur",
                    unit_cost=Decimal("12.50"),
                    item_name="Seringues 5ml",
                )
            ],
            ledger_entries=[
                LedgerRecord(
                    id="e1",
                    type="expense",
                    source="rent",
                    amount=Decimal("3000"),
                    date=date(2024, 3, 10),
                    description="Loyer",
                )
            ],
        )

    def test_rows_are_tagged_and_newest_first(self):
        rows = build_ledger_rows(self.sources, date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual([r.date for r in rows], sorted((r.date for r in rows), reverse=True))
        manual = [r for r in rows if isinstance(r, ManualRow)]
        derived = [r for r in rows if isinstance(r, DerivedRow)]
        self.assertEqual(len(manual), 1)
        self.assertEqual(manual[0].entry.description, "Loyer")
        self.assertEqual({r.source for r in derived}, {"consultation", "vaccination", "stock_purchase"})

    def test_derived_rows_skip_zero_amounts(self):
        rows = derived_rows(self.sources, date(2024, 3, 1), date(2024, 3, 31))
        self.assertNotIn("c2", [r.source_id for r in rows])

    def test_derived_descriptions_and_types(self):
        rows = {r.source_id: r for r in derived_rows(self.sources, date(2024, 3, 1), date(2024, 3, 31))}
        self.assertEqual(rows["c1"].description, "Consultation - Rex")
        self.assertEqual(rows["c1"].type, "revenue")
        self.assertEqual(rows["m1"].description, "Achat stock - Seringues 5ml")
        self.assertEqual(rows["m1"].type, "expense")
        self.assertEqual(rows["m1"].amount, Decimal("50"))

    def test_rows_outside_range_are_left_out(self):
        rows = build_ledger_rows(self.sources, date(2024, 3, 11), date(2024, 3, 14))
        self.assertEqual([r.source_id for r in rows if isinstance(r, DerivedRow)], ["v1"])
        self.assertFalse(any(isinstance(r, ManualRow) for r in rows))

    def test_sources_are_not_mutated(self):
        build_ledger_rows(self.sources, date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(len(self.sources.ledger_entries), 1)
        self.assertEqual(len(self.sources.consultations), 2)


if __name__ == "__main__":
    unittest.main()
