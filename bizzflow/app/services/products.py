"""Business logic for the product catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas

LOGGER = logging.getLogger(__name__)


class ProductServiceError(RuntimeError):
    """Raised when a catalog operation cannot be completed."""


class DuplicateProductCodeError(ProductServiceError):
    """Raised when another product already uses the requested code."""


@dataclass(frozen=True)
class CatalogEntry:
    """Pricing and availability snapshot of a product."""

    product_id: int
    code: str
    name: str
    unit_price: Decimal
    stock: int
    is_active: bool


class ProductService:
    """Operations to manage the product catalog and its stock levels."""

    @staticmethod
    def list_products(
        db: Session,
        *,
        include_inactive: bool = False,
        search: Optional[str] = None,
        category: Optional[str] = None,
        low_stock: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Product], int]:
        query = db.query(models.Product)

        if not include_inactive:
            query = query.filter(models.Product.is_active.is_(True))

        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(models.Product.name).like(pattern),
                    func.lower(models.Product.code).like(pattern),
                    func.lower(func.coalesce(models.Product.description, "")).like(pattern),
                )
            )

        if category:
            query = query.filter(func.lower(models.Product.category) == category.strip().lower())

        if low_stock:
            query = query.filter(models.Product.stock <= models.Product.min_stock)

        total = query.count()
        items = (
            query.order_by(models.Product.name.asc())
            .offset(max(offset, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def get_product(db: Session, product_id: int) -> Optional[models.Product]:
        return db.query(models.Product).filter(models.Product.id == product_id).first()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[models.Product]:
        return db.query(models.Product).filter(models.Product.code == code.strip()).first()

    @staticmethod
    def catalog_entry(db: Session, product_id: int) -> Optional[CatalogEntry]:
        """Return the current price and stock of a product, if it exists."""

        product = db.get(models.Product, product_id, populate_existing=True)
        if product is None:
            return None
        return CatalogEntry(
            product_id=product.id,
            code=product.code,
            name=product.name,
            unit_price=Decimal(str(product.unit_price)),
            stock=int(product.stock or 0),
            is_active=bool(product.is_active),
        )

    @staticmethod
    def create_product(db: Session, data: schemas.ProductCreate) -> models.Product:
        if ProductService.get_by_code(db, data.code) is not None:
            raise DuplicateProductCodeError(f"Product code '{data.code}' is already in use")

        product = models.Product(**data.model_dump())
        db.add(product)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateProductCodeError(
                f"Product code '{data.code}' is already in use"
            ) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise ProductServiceError("The product could not be created right now.") from exc
        db.refresh(product)
        LOGGER.info("Product %s (%s) created", product.id, product.code)
        return product

    @staticmethod
    def update_product(
        db: Session,
        product: models.Product,
        data: schemas.ProductUpdate,
    ) -> models.Product:
        update_data = data.model_dump(exclude_unset=True)
        for field in ("code", "name", "unit_price", "min_stock", "is_active"):
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        new_code = update_data.get("code")
        if new_code and new_code != product.code:
            existing = ProductService.get_by_code(db, new_code)
            if existing is not None and existing.id != product.id:
                raise DuplicateProductCodeError(f"Product code '{new_code}' is already in use")

        for key, value in update_data.items():
            setattr(product, key, value)

        try:
            db.add(product)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateProductCodeError("Product code is already in use") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise ProductServiceError("The product could not be updated.") from exc

        db.refresh(product)
        return product

    @staticmethod
    def decrement_stock(db: Session, product_id: int, quantity: int) -> bool:
        """Subtract ``quantity`` units in-database when enough stock is available.

        Returns ``False`` when the guarded update matched no row, meaning the
        product disappeared or no longer holds ``quantity`` units.
        """

        result = db.execute(
            update(models.Product)
            .where(models.Product.id == product_id)
            .where(models.Product.stock >= quantity)
            .values(stock=models.Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def restock(db: Session, product_id: int, quantity: int) -> bool:
        result = db.execute(
            update(models.Product)
            .where(models.Product.id == product_id)
            .values(stock=models.Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def adjust_stock(
        db: Session,
        product: models.Product,
        delta: int,
        *,
        reason: Optional[str] = None,
    ) -> models.Product:
        """Apply a manual stock adjustment expressed relative to the stored value."""

        try:
            if delta < 0:
                applied = ProductService.decrement_stock(db, product.id, -delta)
                if not applied:
                    raise ValueError(
                        f"Insufficient stock for {product.name}. Available: {product.stock}"
                    )
            else:
                ProductService.restock(db, product.id, delta)
            db.commit()
        except ValueError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            raise ProductServiceError("The stock could not be updated.") from exc

        db.refresh(product)
        LOGGER.info(
            "Stock of product %s adjusted by %s (%s); now %s",
            product.id,
            delta,
            reason or "manual adjustment",
            product.stock,
        )
        return product

    @staticmethod
    def has_sales(db: Session, product_id: int) -> bool:
        return (
            db.query(models.SaleItem.id)
            .filter(models.SaleItem.product_id == product_id)
            .first()
            is not None
        )

    @staticmethod
    def delete_product(db: Session, product: models.Product) -> bool:
        """Remove a product, deactivating it instead when sales reference it.

        Returns ``True`` when the row was physically deleted.
        """

        if ProductService.has_sales(db, product.id):
            product.is_active = False
            db.add(product)
            db.commit()
            LOGGER.info("Product %s deactivated because it has sales history", product.id)
            return False

        db.delete(product)
        db.commit()
        return True

    @staticmethod
    def stats(db: Session) -> schemas.ProductStats:
        active = db.query(models.Product).filter(models.Product.is_active.is_(True))
        total_products = db.query(func.count(models.Product.id)).scalar() or 0
        active_products = active.count()
        low_stock = active.filter(models.Product.stock <= models.Product.min_stock).count()
        out_of_stock = active.filter(models.Product.stock <= 0).count()
        inventory_value = (
            db.query(func.coalesce(func.sum(models.Product.stock * models.Product.unit_price), 0))
            .filter(models.Product.is_active.is_(True))
            .scalar()
        )
        categories = (
            db.query(func.count(func.distinct(models.Product.category)))
            .filter(models.Product.category.isnot(None))
            .scalar()
        ) or 0
        return schemas.ProductStats(
            total_products=total_products,
            active_products=active_products,
            low_stock=low_stock,
            out_of_stock=out_of_stock,
            inventory_value=Decimal(str(inventory_value or 0)).quantize(Decimal("0.01")),
            categories=categories,
        )
