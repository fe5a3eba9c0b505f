"""Excel exports, sale receipts and full data backups."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..security import require_admin, require_seller_or_admin
from ..services import ExportService, ReceiptService, SaleService
from ..services.exports import EXCEL_MEDIA_TYPE, timestamped_filename
from ..services.receipts import PDF_MEDIA_TYPE, receipt_filename

router = APIRouter(dependencies=[Depends(require_seller_or_admin)])


class BackupFormat(str, Enum):
    JSON = "json"
    EXCEL = "excel"


def _excel_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=EXCEL_MEDIA_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Cache-Control": "no-store",
        },
    )


@router.get("/clients/excel")
def export_clients(db: Session = Depends(get_db)) -> Response:
    return _excel_response(ExportService.clients_workbook(db), "clients.xlsx")


@router.get("/products/excel")
def export_products(db: Session = Depends(get_db)) -> Response:
    return _excel_response(ExportService.products_workbook(db), "products.xlsx")


@router.get("/sales/excel")
def export_sales(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
) -> Response:
    content = ExportService.sales_workbook(db, start_date=start_date, end_date=end_date)
    return _excel_response(content, "sales.xlsx")


@router.get("/sales/{sale_id}/pdf")
def export_sale_receipt(sale_id: int, db: Session = Depends(get_db)) -> Response:
    sale = SaleService.get_sale(db, sale_id)
    if sale is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": "sale_not_found", "message": f"Sale {sale_id} not found"},
        )
    return Response(
        content=ReceiptService.sale_receipt(sale),
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={receipt_filename(sale)}"},
    )


@router.get("/inventory/excel")
def export_inventory(
    low_stock_only: bool = Query(False),
    db: Session = Depends(get_db),
) -> Response:
    content = ExportService.inventory_workbook(db, low_stock_only=low_stock_only)
    return _excel_response(content, "inventory_report.xlsx")


@router.get("/backup", dependencies=[Depends(require_admin)])
def export_backup(
    format: BackupFormat = Query(BackupFormat.EXCEL),
    db: Session = Depends(get_db),
) -> Response:
    """Download every client, product and sale as JSON or as a multi-sheet workbook."""
    if format == BackupFormat.JSON:
        return JSONResponse(
            content=ExportService.backup_document(db),
            headers={
                "Content-Disposition": (
                    f"attachment; filename={timestamped_filename('bizzflow_backup', 'json')}"
                )
            },
        )
    return _excel_response(
        ExportService.backup_workbook(db),
        timestamped_filename("bizzflow_backup", "xlsx"),
    )
