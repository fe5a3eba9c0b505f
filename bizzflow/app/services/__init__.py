"""Service layer encapsulating business logic for API routers."""

from .clients import ClientService, ClientServiceError
from .dashboard import DashboardService
from .exports import ExportService
from .products import (
    CatalogEntry,
    DuplicateProductCodeError,
    ProductService,
    ProductServiceError,
)
from .receipts import ReceiptService
from .sales import (
    ClientNotFoundError,
    ConstraintViolationError,
    InsufficientStockError,
    InvalidSaleError,
    ProductNotFoundError,
    SaleDeletionForbiddenError,
    SaleNotFoundError,
    SaleService,
    SaleServiceError,
    StoreUnavailableError,
)
from .users import UserService, UserServiceError

__all__ = [
    "ClientService",
    "ClientServiceError",
    "DashboardService",
    "ExportService",
    "CatalogEntry",
    "DuplicateProductCodeError",
    "ProductService",
    "ProductServiceError",
    "ReceiptService",
    "ClientNotFoundError",
    "ConstraintViolationError",
    "InsufficientStockError",
    "InvalidSaleError",
    "ProductNotFoundError",
    "SaleDeletionForbiddenError",
    "SaleNotFoundError",
    "SaleService",
    "SaleServiceError",
    "StoreUnavailableError",
    "UserService",
    "UserServiceError",
]
