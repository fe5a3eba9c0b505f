"""Pydantic schemas for the client resources."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.client import ClientCategory
from .common import PaginatedResponse, strip_optional

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")


def _validate_email(value: Optional[str]) -> Optional[str]:
    value = strip_optional(value)
    if value is None:
        return None
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value.lower()


def _validate_phone(value: Optional[str]) -> Optional[str]:
    value = strip_optional(value)
    if value is None:
        return None
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number")
    return value


class ClientBase(BaseModel):
    """Attributes shared by create and update operations."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=120)
    province: Optional[str] = Field(default=None, max_length=120)
    category: ClientCategory = ClientCategory.NORMAL
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Name is required")
        return stripped

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        return _validate_email(value)

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: Optional[str]) -> Optional[str]:
        return _validate_phone(value)

    @field_validator("address", "city", "province", "notes")
    @classmethod
    def _strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)


class ClientCreate(ClientBase):
    """Schema used when creating a client."""


class ClientUpdate(BaseModel):
    """Schema used when updating an existing client."""

    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=120)
    province: Optional[str] = Field(default=None, max_length=120)
    category: Optional[ClientCategory] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name", "address", "city", "province", "notes", mode="before")
    @classmethod
    def _strip_updatable(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        return _validate_email(value)

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: Optional[str]) -> Optional[str]:
        return _validate_phone(value)


class ClientRead(ClientBase):
    """Schema used when returning client data."""

    id: int
    total_spent: Decimal
    last_purchase: Optional[date] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientListResponse(PaginatedResponse[ClientRead]):
    """Paginated client listing."""


class ClientStats(BaseModel):
    total_clients: int = Field(..., ge=0)
    by_category: Dict[str, int] = Field(default_factory=dict)
    vip_clients: int = Field(..., ge=0)
    total_revenue: Decimal = Field(..., ge=0)
    average_spent: Decimal = Field(..., ge=0)
    new_this_month: int = Field(..., ge=0)
