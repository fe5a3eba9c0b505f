"""Router exposing sale registration, reversal and reporting."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import require_seller_or_admin
from ..services import SaleService, SaleServiceError

router = APIRouter(dependencies=[Depends(require_seller_or_admin)])

ERROR_STATUS = {
    "invalid_sale": status.HTTP_400_BAD_REQUEST,
    "product_not_found": status.HTTP_404_NOT_FOUND,
    "client_not_found": status.HTTP_404_NOT_FOUND,
    "insufficient_stock": status.HTTP_409_CONFLICT,
    "sale_not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "constraint_violation": status.HTTP_409_CONFLICT,
    "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _to_http_error(exc: SaleServiceError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": exc.kind, "message": str(exc), **exc.details},
    )


@router.post("/", response_model=schemas.SaleDetail, status_code=status.HTTP_201_CREATED)
def create_sale(
    payload: schemas.SaleCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_seller_or_admin),
) -> schemas.SaleDetail:
    """Register a sale, decrementing stock and updating the client's totals."""
    try:
        return SaleService.create_sale(db, payload, seller_id=user.id)
    except SaleServiceError as exc:
        raise _to_http_error(exc) from exc


@router.get("/", response_model=schemas.SaleListResponse)
def list_sales(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    today: bool = Query(False),
    this_week: bool = Query(False),
    this_month: bool = Query(False),
    client_id: Optional[int] = Query(None, ge=1),
    seller_id: Optional[int] = Query(None, ge=1),
    payment_method: Optional[models.PaymentMethod] = Query(None),
    sale_status: Optional[models.SaleStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
) -> schemas.SaleListResponse:
    filters = schemas.SaleFilters(
        start_date=start_date,
        end_date=end_date,
        today=today,
        this_week=this_week,
        this_month=this_month,
        client_id=client_id,
        seller_id=seller_id,
        payment_method=payment_method,
        status=sale_status,
    )
    items, total = SaleService.list_sales(db, filters, offset=offset, limit=limit)
    return schemas.SaleListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=schemas.SaleStats)
def sale_stats(
    period: schemas.SalePeriod = Query(schemas.SalePeriod.MONTH),
    db: Session = Depends(get_db),
) -> schemas.SaleStats:
    return SaleService.stats(db, period)


@router.get("/reports/by-product", response_model=list[schemas.ProductSalesRow])
def sales_by_product(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    category: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[schemas.ProductSalesRow]:
    return SaleService.sales_by_product(
        db,
        start_date=start_date,
        end_date=end_date,
        category=category,
        limit=limit,
    )


@router.get("/{sale_id}", response_model=schemas.SaleDetail)
def get_sale(sale_id: int, db: Session = Depends(get_db)) -> schemas.SaleDetail:
    sale = SaleService.get_sale(db, sale_id)
    if sale is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": "sale_not_found", "message": f"Sale {sale_id} not found"},
        )
    return sale


@router.delete("/{sale_id}", response_model=schemas.SaleDetail)
def delete_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_seller_or_admin),
) -> schemas.SaleDetail:
    """Delete a sale, returning it as it was before the reversal."""
    try:
        return SaleService.delete_sale(db, sale_id, user_id=user.id, role=user.role)
    except SaleServiceError as exc:
        raise _to_http_error(exc) from exc
