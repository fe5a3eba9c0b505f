"""Expose Pydantic schemas for convenient imports."""

from .auth import (
    LoginRequest,
    PasswordChangeRequest,
    TokenResponse,
    UserCreate,
    UserRead,
)
from .client import (
    ClientBase,
    ClientCreate,
    ClientListResponse,
    ClientRead,
    ClientStats,
    ClientUpdate,
)
from .common import MessageResponse, PaginatedResponse
from .dashboard import (
    CategoryMetric,
    ChartPeriod,
    DashboardMetrics,
    SalesBucket,
    SalesByPeriodResponse,
    TopClient,
    TopProduct,
)
from .product import (
    ProductCreate,
    ProductListResponse,
    ProductRead,
    ProductStats,
    ProductUpdate,
    StockAdjustment,
)
from .sale import (
    ProductSalesRow,
    SaleCreate,
    SaleDetail,
    SaleFilters,
    SaleItemInput,
    SaleItemRead,
    SaleListResponse,
    SalePeriod,
    SaleRead,
    SaleStats,
)

__all__ = [
    "LoginRequest",
    "PasswordChangeRequest",
    "TokenResponse",
    "UserCreate",
    "UserRead",
    "ClientBase",
    "ClientCreate",
    "ClientListResponse",
    "ClientRead",
    "ClientStats",
    "ClientUpdate",
    "MessageResponse",
    "PaginatedResponse",
    "CategoryMetric",
    "ChartPeriod",
    "DashboardMetrics",
    "SalesBucket",
    "SalesByPeriodResponse",
    "TopClient",
    "TopProduct",
    "ProductCreate",
    "ProductListResponse",
    "ProductRead",
    "ProductStats",
    "ProductUpdate",
    "StockAdjustment",
    "ProductSalesRow",
    "SaleCreate",
    "SaleDetail",
    "SaleFilters",
    "SaleItemInput",
    "SaleItemRead",
    "SaleListResponse",
    "SalePeriod",
    "SaleRead",
    "SaleStats",
]
