"""Expose SQLAlchemy models for convenient imports."""

from .client import Client, ClientCategory
from .product import Product
from .sale import PaymentMethod, Sale, SaleItem, SaleStatus
from .user import User, UserRole

__all__ = [
    "Client",
    "ClientCategory",
    "PaymentMethod",
    "Product",
    "Sale",
    "SaleItem",
    "SaleStatus",
    "User",
    "UserRole",
]
