from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from vetclinic.core.auth import SessionUser, get_current_user
from vetclinic.db.session import get_db
from vetclinic.schemas.stock import StockImportResult
from vetclinic.services import stock_csv

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("/export.csv")
def export_stock_csv(db: Session = Depends(get_db), user: SessionUser = Depends(get_current_user)) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="stock_{date.today().isoformat()}.csv"'}
    return Response(content=stock_csv.export_csv(db, user.tenant_id), media_type="text/csv", headers=headers)


@router.get("/export.xlsx")
def export_stock_xlsx(db: Session = Depends(get_db), user: SessionUser = Depends(get_current_user)) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="stock_{date.today().isoformat()}.xlsx"'}
    return Response(
        content=stock_csv.export_xlsx(db, user.tenant_id),
        media_type=stock_csv.XLSX_MEDIA_TYPE,
        headers=headers,
    )


@router.get("/template.csv")
def download_template(_: SessionUser = Depends(get_current_user)) -> Response:
    headers = {"Content-Disposition": 'attachment; filename="gabarit_import_stock.csv"'}
    return Response(content=stock_csv.template_csv(), media_type="text/csv", headers=headers)


@router.post("/import", response_model=StockImportResult)
async def import_stock(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
) -> StockImportResult:
    content = await file.read()
    return stock_csv.import_csv(db, user.tenant_id, content)
