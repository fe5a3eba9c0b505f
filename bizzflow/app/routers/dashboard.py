"""Dashboard endpoints aggregating sales, clients and products."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import get_current_user
from ..services import DashboardService

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/metrics", response_model=schemas.DashboardMetrics)
def dashboard_metrics(db: Session = Depends(get_db)) -> schemas.DashboardMetrics:
    return DashboardService.metrics(db)


@router.get("/sales-by-period", response_model=schemas.SalesByPeriodResponse)
def sales_by_period(
    period: schemas.ChartPeriod = Query(schemas.ChartPeriod.LAST_7_DAYS),
    db: Session = Depends(get_db),
) -> schemas.SalesByPeriodResponse:
    return DashboardService.sales_by_period(db, period)


@router.get("/top-products", response_model=list[schemas.TopProduct])
def top_products(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[schemas.TopProduct]:
    return DashboardService.top_products(db, limit=limit)


@router.get("/top-clients", response_model=list[schemas.TopClient])
def top_clients(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[schemas.TopClient]:
    return DashboardService.top_clients(db, limit=limit)


@router.get("/category-metrics", response_model=list[schemas.CategoryMetric])
def category_metrics(db: Session = Depends(get_db)) -> list[schemas.CategoryMetric]:
    return DashboardService.category_metrics(db)
