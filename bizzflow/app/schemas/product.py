from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import PaginatedResponse, strip_optional


class ProductBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = Field(default=None, max_length=1000)
    unit_price: Decimal = Field(..., ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    supplier: Optional[str] = Field(default=None, max_length=200)
    is_active: bool = True

    @field_validator("code", "name")
    @classmethod
    def _strip_strings(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Value must not be blank")
        return stripped

    @field_validator("category", "description", "supplier")
    @classmethod
    def _strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    code: Optional[str] = Field(default=None, max_length=64)
    name: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = Field(default=None, max_length=1000)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = Field(default=None, max_length=200)
    is_active: Optional[bool] = None

    @field_validator("code", "name", "category", "description", "supplier", mode="before")
    @classmethod
    def _strip_updatable(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)


class StockAdjustment(BaseModel):
    """Signed stock delta applied to a product."""

    quantity: int = Field(..., description="Units to add (positive) or remove (negative)")
    reason: Optional[str] = Field(default=None, max_length=255)

    @field_validator("quantity")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity must not be zero")
        return value


class ProductRead(ProductBase):
    id: int
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(PaginatedResponse[ProductRead]):
    pass


class ProductStats(BaseModel):
    total_products: int = Field(..., ge=0)
    active_products: int = Field(..., ge=0)
    low_stock: int = Field(..., ge=0)
    out_of_stock: int = Field(..., ge=0)
    inventory_value: Decimal = Field(..., ge=0)
    categories: int = Field(..., ge=0)
