"""Sale lifecycle: creation, reversal and read projections."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from time import perf_counter
from typing import Any, Iterable, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, joinedload, selectinload

from .. import models, schemas
from ..database import transaction
from ..time_utils import (
    as_utc,
    date_range_bounds,
    day_bounds,
    day_start,
    month_start,
    utcnow,
    week_start,
    year_start,
)
from .clients import ClientService
from .products import ProductService

LOGGER = logging.getLogger(__name__)

CENTS = Decimal("0.01")
SALE_NUMBER_PREFIX = "V"
SALE_NUMBER_MAX_SUFFIX = 999
SALE_NUMBER_ATTEMPTS = 3
DELETE_GRACE_PERIOD = timedelta(days=1)
MAX_PAGE_SIZE = 1000


class SaleServiceError(RuntimeError):
    """Base class for failures of a sale operation.

    ``kind`` is a stable, machine-checkable identifier the HTTP layer maps to
    a status code.
    """

    kind = "sale_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details


class InvalidSaleError(SaleServiceError):
    kind = "invalid_sale"


class ProductNotFoundError(SaleServiceError):
    kind = "product_not_found"


class ClientNotFoundError(SaleServiceError):
    kind = "client_not_found"


class InsufficientStockError(SaleServiceError):
    kind = "insufficient_stock"


class SaleNotFoundError(SaleServiceError):
    kind = "sale_not_found"


class SaleDeletionForbiddenError(SaleServiceError):
    kind = "forbidden"


class ConstraintViolationError(SaleServiceError):
    kind = "constraint_violation"


class StoreUnavailableError(SaleServiceError):
    kind = "store_unavailable"


@dataclass(frozen=True)
class _PricedLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _is_store_unavailable(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(exc.connection_invalidated)


def _is_sale_number_conflict(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: sales.sale_number";
    # PostgreSQL: 'duplicate key ... "sales_sale_number_key"'.
    return "sale_number" in str(exc.orig)


class SaleService:
    """Transactional write API for sales plus the read projections used by routers."""

    @staticmethod
    def _ensure_client(db: Session, client_id: Optional[int]) -> Optional[models.Client]:
        if client_id is None:
            return None
        client = ClientService.get_client(db, client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found", client_id=client_id)
        return client

    @staticmethod
    def _price_lines(
        db: Session, items: Sequence[schemas.SaleItemInput]
    ) -> list[_PricedLine]:
        """Validate availability and snapshot the unit price of every line."""

        if not items:
            raise InvalidSaleError("A sale must include at least one item")

        requested: dict[int, int] = defaultdict(int)
        for item in items:
            if item.quantity < 1:
                raise InvalidSaleError("Quantity must be at least 1", product_id=item.product_id)
            requested[item.product_id] += item.quantity

        entries = {}
        for product_id, quantity in requested.items():
            entry = ProductService.catalog_entry(db, product_id)
            if entry is None or not entry.is_active:
                raise ProductNotFoundError(
                    f"Product {product_id} not found", product_id=product_id
                )
            if entry.stock < quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {entry.name}. Available: {entry.stock}",
                    product_id=product_id,
                    product_name=entry.name,
                    requested=quantity,
                    available=entry.stock,
                )
            entries[product_id] = entry

        lines: list[_PricedLine] = []
        for item in items:
            entry = entries[item.product_id]
            source_price = item.unit_price if item.unit_price is not None else entry.unit_price
            unit_price = _money(source_price)
            lines.append(
                _PricedLine(
                    product_id=entry.product_id,
                    product_name=entry.name,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    total_price=_money(unit_price * item.quantity),
                )
            )
        return lines

    @staticmethod
    def _next_sale_number(db: Session, sold_at: datetime) -> str:
        prefix = f"{SALE_NUMBER_PREFIX}{sold_at:%y%m%d}"
        highest = 0
        for (number,) in (
            db.query(models.Sale.sale_number)
            .filter(models.Sale.sale_number.like(f"{prefix}%"))
            .all()
        ):
            suffix = number[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        if highest >= SALE_NUMBER_MAX_SUFFIX:
            raise ConstraintViolationError(
                f"No sale numbers left for {sold_at:%Y-%m-%d}",
                sale_number_prefix=prefix,
            )
        return f"{prefix}{highest + 1:03d}"

    @classmethod
    def _insert_sale(
        cls,
        db: Session,
        data: schemas.SaleCreate,
        *,
        seller_id: Optional[int],
    ) -> Tuple[models.Sale, int]:
        with transaction(db):
            client = cls._ensure_client(db, data.client_id)
            lines = cls._price_lines(db, data.items)

            subtotal = _money(sum((line.total_price for line in lines), Decimal("0")))
            discount = _money(data.discount)
            tax = _money(data.tax)
            if discount > subtotal:
                raise InvalidSaleError("The discount cannot exceed the subtotal")
            final_amount = _money(subtotal - discount + tax)

            sold_at = utcnow()
            sale = models.Sale(
                sale_number=cls._next_sale_number(db, sold_at),
                client_id=client.id if client else None,
                seller_id=seller_id,
                subtotal=subtotal,
                discount=discount,
                tax=tax,
                final_amount=final_amount,
                payment_method=data.payment_method,
                status=models.SaleStatus.COMPLETED,
                notes=data.notes,
                sale_date=sold_at,
            )
            db.add(sale)
            db.flush()

            for line in lines:
                db.add(
                    models.SaleItem(
                        sale_id=sale.id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total_price,
                    )
                )
                if not ProductService.decrement_stock(db, line.product_id, line.quantity):
                    raise InsufficientStockError(
                        f"Insufficient stock for {line.product_name}",
                        product_id=line.product_id,
                        product_name=line.product_name,
                        requested=line.quantity,
                    )
            db.flush()

            if client is not None:
                ClientService.apply_purchase(db, client.id, final_amount, sold_at.date())
        return sale, len(lines)

    @classmethod
    def create_sale(
        cls,
        db: Session,
        data: schemas.SaleCreate,
        *,
        seller_id: Optional[int],
    ) -> models.Sale:
        """Register a sale in a single transaction.

        A concurrent sale that took the same number rolls this attempt back;
        the sale is then rebuilt with a fresh number, up to
        ``SALE_NUMBER_ATTEMPTS`` times.
        """

        start = perf_counter()
        for attempt in range(1, SALE_NUMBER_ATTEMPTS + 1):
            try:
                sale, line_count = cls._insert_sale(db, data, seller_id=seller_id)
                break
            except SaleServiceError as exc:
                LOGGER.warning("Sale rejected (%s): %s", exc.kind, exc)
                raise
            except IntegrityError as exc:
                if _is_sale_number_conflict(exc) and attempt < SALE_NUMBER_ATTEMPTS:
                    LOGGER.info("Sale number taken concurrently (attempt %s); retrying", attempt)
                    continue
                LOGGER.error("Sale rejected by a database constraint: %s", exc.orig)
                raise ConstraintViolationError("The sale violates a database constraint") from exc
            except DBAPIError as exc:
                if _is_store_unavailable(exc):
                    LOGGER.error("Database unavailable while creating a sale: %s", exc.orig)
                    raise StoreUnavailableError("The database is not available right now") from exc
                raise

        db.refresh(sale)
        LOGGER.info(
            "Sale %s created by user %s: %s items, total %s (%.1f ms)",
            sale.sale_number,
            seller_id,
            line_count,
            sale.final_amount,
            (perf_counter() - start) * 1000,
        )
        return sale

    @staticmethod
    def _ensure_can_delete(
        sale: models.Sale, role: models.UserRole, now: datetime
    ) -> None:
        if role == models.UserRole.ADMIN:
            return
        age = now - as_utc(sale.sale_date)
        if age > DELETE_GRACE_PERIOD:
            raise SaleDeletionForbiddenError(
                "Only administrators can delete sales older than one day",
                sale_id=sale.id,
            )

    @classmethod
    def delete_sale(
        cls,
        db: Session,
        sale_id: int,
        *,
        user_id: Optional[int],
        role: models.UserRole,
    ) -> schemas.SaleDetail:
        """Delete a sale, restocking its products and reversing the client aggregate.

        Returns the snapshot of the sale as it was before deletion.
        """

        try:
            with transaction(db):
                sale = cls.get_sale(db, sale_id)
                if sale is None:
                    raise SaleNotFoundError(f"Sale {sale_id} not found", sale_id=sale_id)
                cls._ensure_can_delete(sale, role, utcnow())
                snapshot = schemas.SaleDetail.model_validate(sale)

                for item in sale.items:
                    ProductService.restock(db, item.product_id, item.quantity)

                if sale.client_id is not None:
                    ClientService.reverse_purchase(
                        db,
                        sale.client_id,
                        _money(sale.final_amount),
                        excluding_sale_id=sale.id,
                    )

                # Line items go first through the delete-orphan cascade.
                db.delete(sale)
                db.flush()
        except SaleServiceError as exc:
            LOGGER.warning("Sale deletion rejected (%s): %s", exc.kind, exc)
            raise
        except IntegrityError as exc:
            raise ConstraintViolationError("The sale could not be deleted") from exc
        except DBAPIError as exc:
            if _is_store_unavailable(exc):
                LOGGER.error("Database unavailable while deleting a sale: %s", exc.orig)
                raise StoreUnavailableError("The database is not available right now") from exc
            raise

        LOGGER.info(
            "Sale %s deleted by user %s; %s items restocked",
            snapshot.sale_number,
            user_id,
            len(snapshot.items),
        )
        return snapshot

    @staticmethod
    def get_sale(db: Session, sale_id: int) -> Optional[models.Sale]:
        return (
            db.query(models.Sale)
            .options(
                selectinload(models.Sale.items).joinedload(models.SaleItem.product),
                joinedload(models.Sale.client),
                joinedload(models.Sale.seller),
            )
            .filter(models.Sale.id == sale_id)
            .first()
        )

    @staticmethod
    def _date_window(
        filters: schemas.SaleFilters, today: date
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        # Only one date predicate applies: explicit range, today, week, month.
        if filters.start_date or filters.end_date:
            return date_range_bounds(filters.start_date, filters.end_date)
        if filters.today:
            return day_bounds(today)
        tomorrow = day_start(today) + timedelta(days=1)
        if filters.this_week:
            return day_start(week_start(today)), tomorrow
        if filters.this_month:
            return day_start(month_start(today)), tomorrow
        return None, None

    @classmethod
    def _filtered_query(cls, db: Session, filters: schemas.SaleFilters):
        query = db.query(models.Sale)

        lower, upper = cls._date_window(filters, utcnow().date())
        if lower is not None:
            query = query.filter(models.Sale.sale_date >= lower)
        if upper is not None:
            query = query.filter(models.Sale.sale_date < upper)
        if filters.client_id is not None:
            query = query.filter(models.Sale.client_id == filters.client_id)
        if filters.seller_id is not None:
            query = query.filter(models.Sale.seller_id == filters.seller_id)
        if filters.payment_method is not None:
            query = query.filter(models.Sale.payment_method == filters.payment_method)
        if filters.status is not None:
            query = query.filter(models.Sale.status == filters.status)
        return query

    @classmethod
    def list_sales(
        cls,
        db: Session,
        filters: Optional[schemas.SaleFilters] = None,
        *,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Sale], int]:
        query = cls._filtered_query(db, filters or schemas.SaleFilters())

        total = query.count()
        items = (
            query.options(joinedload(models.Sale.client), joinedload(models.Sale.seller))
            .order_by(models.Sale.sale_date.desc(), models.Sale.id.desc())
            .offset(max(offset, 0))
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
            .all()
        )
        return items, total

    @staticmethod
    def _period_start(period: schemas.SalePeriod, today: date) -> Optional[datetime]:
        if period == schemas.SalePeriod.TODAY:
            return day_start(today)
        if period == schemas.SalePeriod.WEEK:
            return day_start(week_start(today))
        if period == schemas.SalePeriod.MONTH:
            return day_start(month_start(today))
        if period == schemas.SalePeriod.YEAR:
            return day_start(year_start(today))
        return None

    @classmethod
    def stats(
        cls, db: Session, period: schemas.SalePeriod = schemas.SalePeriod.MONTH
    ) -> schemas.SaleStats:
        query = db.query(
            models.Sale.payment_method,
            func.count(models.Sale.id),
            func.coalesce(func.sum(models.Sale.final_amount), 0),
            func.coalesce(func.sum(models.Sale.discount), 0),
            func.coalesce(func.sum(models.Sale.tax), 0),
        ).filter(models.Sale.status == models.SaleStatus.COMPLETED)

        lower = cls._period_start(period, utcnow().date())
        if lower is not None:
            query = query.filter(models.Sale.sale_date >= lower)

        total_sales = 0
        revenue = Decimal("0")
        discount = Decimal("0")
        tax = Decimal("0")
        by_method: dict[str, Decimal] = {}
        for method, count, method_revenue, method_discount, method_tax in query.group_by(
            models.Sale.payment_method
        ).all():
            total_sales += int(count)
            revenue += _money(method_revenue)
            discount += _money(method_discount)
            tax += _money(method_tax)
            key = method.value if isinstance(method, models.PaymentMethod) else str(method)
            by_method[key] = _money(method_revenue)

        average = _money(revenue / total_sales) if total_sales else Decimal("0.00")
        return schemas.SaleStats(
            period=period,
            total_sales=total_sales,
            total_revenue=_money(revenue),
            average_ticket=average,
            total_discount=_money(discount),
            total_tax=_money(tax),
            by_payment_method=by_method,
        )

    @staticmethod
    def sales_by_product(
        db: Session,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[schemas.ProductSalesRow]:
        total_revenue = func.sum(models.SaleItem.total_price)
        query = (
            db.query(
                models.Product.id,
                models.Product.code,
                models.Product.name,
                models.Product.category,
                models.Product.unit_price,
                models.Product.stock,
                func.sum(models.SaleItem.quantity),
                total_revenue,
                func.count(func.distinct(models.SaleItem.sale_id)),
                func.avg(models.SaleItem.unit_price),
            )
            .join(models.SaleItem, models.SaleItem.product_id == models.Product.id)
            .join(models.Sale, models.Sale.id == models.SaleItem.sale_id)
        )

        lower, upper = date_range_bounds(start_date, end_date)
        if lower is not None:
            query = query.filter(models.Sale.sale_date >= lower)
        if upper is not None:
            query = query.filter(models.Sale.sale_date < upper)
        if category:
            query = query.filter(models.Product.category == category)

        query = query.group_by(
            models.Product.id,
            models.Product.code,
            models.Product.name,
            models.Product.category,
            models.Product.unit_price,
            models.Product.stock,
        ).order_by(total_revenue.desc())
        if limit:
            query = query.limit(limit)

        return [
            schemas.ProductSalesRow(
                product_id=product_id,
                product_code=code,
                product_name=name,
                product_category=product_category,
                total_quantity=int(quantity or 0),
                total_revenue=_money(revenue),
                sale_count=int(sale_count or 0),
                average_price=_money(average_price),
                current_price=_money(unit_price),
                current_stock=int(stock or 0),
            )
            for (
                product_id,
                code,
                name,
                product_category,
                unit_price,
                stock,
                quantity,
                revenue,
                sale_count,
                average_price,
            ) in query.all()
        ]
