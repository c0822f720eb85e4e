"""
Stock spreadsheet exchange: CSV export, the import template and CSV import,
plus an xlsx export of the same columns.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetclinic.core.errors import CsvImportError, PersistenceError
from vetclinic.models.stock import StockCategory, StockItem, StockUnit
from vetclinic.schemas.stock import StockImportResult, StockImportRowError, StockItemRead

logger = logging.getLogger("vetclinic.stock")

COLUMNS = [
    "Nom",
    "Catégorie",
    "Sous-catégorie",
    "Fabricant",
    "Numéro de lot",
    "Dosage",
    "Unité",
    "Stock actuel",
    "Stock minimum",
    "Prix d'achat",
    "Prix de vente",
    "Date d'expiration",
    "Fournisseur",
    "Emplacement",
    "Notes",
    "Code-barres",
    "SKU",
]

REQUIRED_COLUMNS = ["Nom", "Catégorie", "Unité", "Stock actuel", "Stock minimum", "Prix d'achat", "Prix de vente"]

TEMPLATE_ROWS = [
    [
        "Amoxicilline 500mg", "medication", "Antibiotique", "Boehringer Ingelheim", "AMX2024001", "500mg", "box",
        "15", "5", "20.00", "25.50", "2025-12-31", "Pharmacie Vétérinaire Centrale", "Armoire A - Étagère 1",
        "Stockage à température ambiante", "1234567890123", "MED-AMX-500",
    ],
    [
        "Vaccin DHPP", "vaccine", "Vaccin combiné", "Merial", "VAC2024001", "1ml", "vial",
        "25", "10", "45.00", "55.00", "2025-06-30", "VetoPharma", "Réfrigérateur - Étagère 1",
        "Conservation entre 2-8°C", "9876543210987", "VAC-DHPP-001",
    ],
    [
        "Seringues 5ml", "consumable", "Matériel médical", "BD", "SYR2024001", "5ml", "unit",
        "100", "20", "0.50", "0.75", "", "MedSupply", "Armoire B - Étagère 2",
        "Usage unique", "5556667778889", "CON-SYR-5ML",
    ],
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_INT_PREFIX = re.compile(r"^\s*[+-]?\d+")
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)")


def parse_int(text: str | None) -> int:
    """Leading integer of text, 0 when there is none ("15.7" -> 15, "abc" -> 0)."""
    m = _INT_PREFIX.match(text or "")
    return int(m.group(0)) if m else 0


def parse_decimal(text: str | None) -> Decimal:
    m = _NUMBER_PREFIX.match((text or "").replace(",", "."))
    if not m:
        return Decimal("0")
    try:
        return Decimal(m.group(0).strip())
    except InvalidOperation:
        return Decimal("0")


def parse_date(text: str | None) -> date | None:
    value = (text or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _clean(value: str | None) -> str:
    return (value or "").replace('"', "").strip()


def item_row(item: StockItem) -> list:
    return [
        item.name,
        item.category.value,
        item.subcategory or "",
        item.manufacturer or "",
        item.batch_number or "",
        item.dosage or "",
        item.unit.value,
        item.current_stock or 0,
        item.minimum_stock or 0,
        str(item.purchase_price or 0),
        str(item.selling_price or 0),
        item.expiration_date.isoformat() if item.expiration_date else "",
        item.supplier or "",
        item.location or "",
        item.notes or "",
        item.barcode or "",
        item.sku or "",
    ]


def list_stock_items(db: Session, tenant_id: str) -> list[StockItem]:
    q = select(StockItem).where(StockItem.tenant_id == tenant_id).order_by(StockItem.name)
    return db.execute(q).scalars().all()


def render_csv(rows: list[list]) -> bytes:
    out = io.StringIO()
    w = csv.writer(out, lineterminator="\n")
    w.writerow(COLUMNS)
    for r in rows:
        w.writerow(r)
    return out.getvalue().encode("utf-8")


def export_csv(db: Session, tenant_id: str) -> bytes:
    return render_csv([item_row(i) for i in list_stock_items(db, tenant_id)])


def template_csv() -> bytes:
    return render_csv(TEMPLATE_ROWS)


def export_xlsx(db: Session, tenant_id: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Stock"
    ws.append(COLUMNS)
    for item in list_stock_items(db, tenant_id):
        row = item_row(item)
        # numeric cells stay numeric in the workbook
        row[9] = float(item.purchase_price or 0)
        row[10] = float(item.selling_price or 0)
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def parse_stock_csv(content: bytes | str) -> tuple[list[dict], list[StockImportRowError]]:
    """
    Parse an uploaded stock CSV into item field dicts.
    Raises CsvImportError when the file is unreadable or required headers are missing;
    invalid rows are skipped and reported with their line number.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise CsvImportError("Impossible de lire le fichier CSV.") from exc
    else:
        text = content.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text))
    try:
        header_row = next(reader)
    except StopIteration as exc:
        raise CsvImportError("Impossible de lire le fichier CSV.") from exc
    except csv.Error as exc:
        raise CsvImportError("Impossible de lire le fichier CSV.") from exc
    headers = [_clean(h) for h in header_row]
    missing = [h for h in REQUIRED_COLUMNS if h not in headers]
    if missing:
        raise CsvImportError(f"En-têtes manquants: {', '.join(missing)}", missing_headers=missing)

    categories = {c.value for c in StockCategory}
    units = {u.value for u in StockUnit}
    items: list[dict] = []
    errors: list[StockImportRowError] = []
    line_no = 1
    while True:
        try:
            values = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            line_no += 1
            errors.append(StockImportRowError(line=line_no, reason=str(exc)))
            continue
        line_no += 1
        if not any(v.strip() for v in values):
            continue
        row = {h: _clean(values[i]) if i < len(values) else "" for i, h in enumerate(headers)}
        if not row["Nom"] or not row["Catégorie"] or not row["Unité"]:
            errors.append(StockImportRowError(line=line_no, reason="missing name, category or unit"))
            continue
        if row["Catégorie"] not in categories:
            errors.append(StockImportRowError(line=line_no, reason=f"unknown category: {row['Catégorie']}"))
            continue
        if row["Unité"] not in units:
            errors.append(StockImportRowError(line=line_no, reason=f"unknown unit: {row['Unité']}"))
            continue
        items.append(
            {
                "name": row["Nom"],
                "category": StockCategory(row["Catégorie"]),
                "subcategory": row.get("Sous-catégorie") or None,
                "manufacturer": row.get("Fabricant") or None,
                "batch_number": row.get("Numéro de lot") or None,
                "dosage": row.get("Dosage") or None,
                "unit": StockUnit(row["Unité"]),
                "current_stock": parse_int(row["Stock actuel"]),
                "minimum_stock": parse_int(row["Stock minimum"]),
                "purchase_price": parse_decimal(row["Prix d'achat"]),
                "selling_price": parse_decimal(row["Prix de vente"]),
                "expiration_date": parse_date(row.get("Date d'expiration")),
                "supplier": row.get("Fournisseur") or None,
                "location": row.get("Emplacement") or None,
                "notes": row.get("Notes") or None,
                "barcode": row.get("Code-barres") or None,
                "sku": row.get("SKU") or None,
            }
        )
    return items, errors


def import_csv(db: Session, tenant_id: str, content: bytes | str) -> StockImportResult:
    fields, errors = parse_stock_csv(content)
    rows = [StockItem(tenant_id=tenant_id, is_active=True, **f) for f in fields]
    db.add_all(rows)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("stock_import_failed tenant=%s rows=%s", tenant_id, len(rows))
        raise PersistenceError(f"Could not save imported stock: {exc.__class__.__name__}") from exc
    logger.info("stock_imported tenant=%s imported=%s errors=%s", tenant_id, len(rows), len(errors))
    return StockImportResult(
        imported=len(rows),
        errors=len(errors),
        error_rows=errors,
        items=[StockItemRead.model_validate(r) for r in rows],
    )
