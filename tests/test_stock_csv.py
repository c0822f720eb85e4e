from __future__ import annotations

import csv
import io
import unittest
from datetime import date
from decimal import Decimal

from openpyxl import load_workbook

from tests.fixtures import TENANT, new_session, reset_db, seed_march
from vetclinic.core.errors import CsvImportError
from vetclinic.models import StockCategory, StockUnit
from vetclinic.services.stock_csv import (
    COLUMNS,
    export_csv,
    export_xlsx,
    import_csv,
    parse_date,
    parse_decimal,
    parse_int,
    parse_stock_csv,
    template_csv,
)


def _csv(rows, header=COLUMNS) -> bytes:
    out = io.StringIO()
    w = csv.writer(out, lineterminator="\n")
    w.writerow(header)
    w.writerows(rows)
    return out.getvalue().encode("utf-8")


def _row(**overrides):
    values = dict(zip(COLUMNS, [""] * len(COLUMNS)))
    values.update({"Nom": "Gants", "Catégorie": "consumable", "Unité": "box", "Stock actuel": "4"})
    values.update(overrides)
    return [values[c] for c in COLUMNS]


class ParsingHelperTests(unittest.TestCase):
    def test_parse_int_takes_leading_integer(self):
        self.assertEqual(parse_int("15"), 15)
        self.assertEqual(parse_int("15.7"), 15)
        self.assertEqual(parse_int(" 12 boites"), 12)
        self.assertEqual(parse_int("abc"), 0)
        self.assertEqual(parse_int(""), 0)
        self.assertEqual(parse_int(None), 0)

    def test_parse_decimal_accepts_comma_separator(self):
        self.assertEqual(parse_decimal("20.00"), Decimal("20.00"))
        self.assertEqual(parse_decimal("25,50"), Decimal("25.50"))
        self.assertEqual(parse_decimal("0.5 MAD"), Decimal("0.5"))
        self.assertEqual(parse_decimal("n/a"), Decimal("0"))

    def test_parse_date(self):
        self.assertEqual(parse_date("2025-12-31"), date(2025, 12, 31))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date("31/12/2025"))


class ParseStockCsvTests(unittest.TestCase):
    def test_template_parses_into_three_items(self):
        items, errors = parse_stock_csv(template_csv())
        self.assertEqual(errors, [])
        self.assertEqual([i["name"] for i in items], ["Amoxicilline 500mg", "Vaccin DHPP", "Seringues 5ml"])
        amox = items[0]
        self.assertEqual(amox["category"], StockCategory.MEDICATION)
        self.assertEqual(amox["unit"], StockUnit.BOX)
        self.assertEqual(amox["current_stock"], 15)
        self.assertEqual(amox["selling_price"], Decimal("25.50"))
        self.assertEqual(amox["expiration_date"], date(2025, 12, 31))
        self.assertIsNone(items[2]["expiration_date"])

    def test_byte_order_mark_and_quotes_are_stripped(self):
        content = "\ufeff" + _csv([_row(Nom='"Gants" nitrile')]).decode("utf-8")
        items, errors = parse_stock_csv(content.encode("utf-8"))
        self.assertEqual(errors, [])
        self.assertEqual(items[0]["name"], "Gants nitrile")

    def test_missing_required_headers(self):
        header = [c for c in COLUMNS if c not in ("Unité", "Prix de vente")]
        with self.assertRaises(CsvImportError) as ctx:
            parse_stock_csv(_csv([], header=header))
        self.assertEqual(ctx.exception.missing_headers, ["Unité", "Prix de vente"])
        self.assertIn("En-têtes manquants", str(ctx.exception))

    def test_empty_or_undecodable_file(self):
        with self.assertRaises(CsvImportError):
            parse_stock_csv(b"")
        with self.assertRaises(CsvImportError):
            parse_stock_csv(b"\xff\xfe\x00N")

    def test_invalid_rows_are_reported_by_line(self):
        rows = [
            _row(),
            _row(Nom=""),
            [""] * len(COLUMNS),
            _row(Catégorie="toy"),
            _row(Unité="crate"),
            _row(Nom="Compresses"),
        ]
        items, errors = parse_stock_csv(_csv(rows))
        self.assertEqual([i["name"] for i in items], ["Gants", "Compresses"])
        self.assertEqual([e.line for e in errors], [3, 5, 6])
        self.assertIn("unknown category", errors[1].reason)
        self.assertIn("unknown unit", errors[2].reason)

    def test_column_order_does_not_matter(self):
        header = list(reversed(COLUMNS))
        items, errors = parse_stock_csv(_csv([list(reversed(_row()))], header=header))
        self.assertEqual(errors, [])
        self.assertEqual(items[0]["name"], "Gants")
        self.assertEqual(items[0]["current_stock"], 4)


class StockExchangeDbTests(unittest.TestCase):
    def setUp(self):
        reset_db()
        self.db = new_session()

    def tearDown(self):
        self.db.close()

    def test_import_then_export_round_trip(self):
        result = import_csv(self.db, TENANT, template_csv() + b"\n" + _csv([_row(Unité="crate")]).split(b"\n", 1)[1])
        self.assertEqual(result.imported, 3)
        self.assertEqual(result.errors, 1)
        self.assertEqual(result.error_rows[0].line, 6)
        self.assertTrue(all(i.is_active for i in result.items))

        exported = export_csv(self.db, TENANT).decode("utf-8")
        lines = list(csv.reader(io.StringIO(exported)))
        self.assertEqual(lines[0], COLUMNS)
        self.assertEqual([r[0] for r in lines[1:]], ["Amoxicilline 500mg", "Seringues 5ml", "Vaccin DHPP"])
        self.assertEqual(lines[1][9], "20.00")

    def test_export_is_scoped_to_tenant(self):
        seed_march(self.db, tenant_id="clinic-2")
        lines = list(csv.reader(io.StringIO(export_csv(self.db, TENANT).decode("utf-8"))))
        self.assertEqual(lines, [COLUMNS])

    def test_xlsx_export_keeps_prices_numeric(self):
        seed_march(self.db)
        wb = load_workbook(io.BytesIO(export_xlsx(self.db, TENANT)))
        ws = wb["Stock"]
        rows = list(ws.iter_rows(values_only=True))
        self.assertEqual(list(rows[0]), COLUMNS)
        self.assertEqual(rows[1][0], "Seringues 5ml")
        self.assertEqual(rows[1][9], 0.5)
        self.assertEqual(rows[1][7], 100)


if __name__ == "__main__":
    unittest.main()
