"""Routers package."""

from .auth import router as auth_router
from .clients import router as clients_router
from .dashboard import router as dashboard_router
from .exports import router as exports_router
from .products import router as products_router
from .sales import router as sales_router

__all__ = [
    "auth_router",
    "clients_router",
    "dashboard_router",
    "exports_router",
    "products_router",
    "sales_router",
]
