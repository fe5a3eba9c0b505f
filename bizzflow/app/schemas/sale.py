from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.sale import PaymentMethod, SaleStatus
from .common import PaginatedResponse, strip_optional


class SaleItemInput(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)


class SaleCreate(BaseModel):
    items: List[SaleItemInput] = Field(..., min_length=1)
    client_id: Optional[int] = Field(default=None, ge=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("notes")
    @classmethod
    def _strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)


class SaleItemRead(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    product_code: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleRead(BaseModel):
    id: int
    sale_number: str
    client_id: Optional[int]
    client_name: Optional[str] = None
    seller_id: Optional[int]
    seller_name: Optional[str] = None
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    final_amount: Decimal
    payment_method: PaymentMethod
    status: SaleStatus
    notes: Optional[str]
    sale_date: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleDetail(SaleRead):
    items: Sequence[SaleItemRead] = Field(default_factory=list)


class SaleListResponse(PaginatedResponse[SaleRead]):
    pass


class SalePeriod(str, Enum):
    """Named periods accepted by sale statistics."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class SaleStats(BaseModel):
    period: SalePeriod
    total_sales: int = Field(..., ge=0)
    total_revenue: Decimal = Field(..., ge=0)
    average_ticket: Decimal = Field(..., ge=0)
    total_discount: Decimal = Field(..., ge=0)
    total_tax: Decimal = Field(..., ge=0)
    by_payment_method: Dict[str, Decimal] = Field(default_factory=dict)


class ProductSalesRow(BaseModel):
    product_id: int
    product_code: str
    product_name: str
    product_category: Optional[str] = None
    total_quantity: int
    total_revenue: Decimal
    sale_count: int
    average_price: Decimal
    current_price: Decimal
    current_stock: int


class SaleFilters(BaseModel):
    """Filters accepted by sale listings and exports."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    today: bool = False
    this_week: bool = False
    this_month: bool = False
    client_id: Optional[int] = None
    seller_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    status: Optional[SaleStatus] = None
