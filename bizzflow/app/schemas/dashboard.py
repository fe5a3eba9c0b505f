from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardMetrics(BaseModel):
    sales_today: int = Field(..., ge=0)
    revenue_today: Decimal = Field(..., ge=0)
    revenue_month: Decimal = Field(..., ge=0)
    sales_month: int = Field(..., ge=0)
    average_ticket: Decimal = Field(..., ge=0)
    total_clients: int = Field(..., ge=0)
    total_products: int = Field(..., ge=0)
    low_stock_products: int = Field(..., ge=0)


class ChartPeriod(str, Enum):
    """Supported windows for the sales chart."""

    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    LAST_12_MONTHS = "12months"


class SalesBucket(BaseModel):
    label: str
    sale_count: int = Field(..., ge=0)
    revenue: Decimal = Field(..., ge=0)


class SalesByPeriodResponse(BaseModel):
    period: ChartPeriod
    data: List[SalesBucket]


class TopProduct(BaseModel):
    product_id: int
    code: str
    name: str
    category: Optional[str] = None
    quantity_sold: int
    revenue: Decimal


class TopClient(BaseModel):
    client_id: int
    name: str
    category: str
    purchases: int
    total_spent: Decimal


class CategoryMetric(BaseModel):
    category: str
    products: int
    quantity_sold: int
    revenue: Decimal
