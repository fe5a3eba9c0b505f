"""Aggregated metrics used by dashboard visualisations."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..time_utils import as_utc, day_bounds, day_start, month_start, utcnow

UNCATEGORIZED = "Uncategorized"


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def _shift_month(month: date, offset: int) -> date:
    index = month.year * 12 + (month.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


class DashboardService:
    """Provides aggregated metrics combining sales, clients and products."""

    @staticmethod
    def metrics(db: Session) -> schemas.DashboardMetrics:
        today = utcnow().date()
        start, end = day_bounds(today)
        first_of_month = day_start(month_start(today))

        sales_today, revenue_today = (
            db.query(
                func.count(models.Sale.id),
                func.coalesce(func.sum(models.Sale.final_amount), 0),
            )
            .filter(models.Sale.status == models.SaleStatus.COMPLETED)
            .filter(models.Sale.sale_date >= start, models.Sale.sale_date < end)
            .one()
        )
        sales_month, revenue_month = (
            db.query(
                func.count(models.Sale.id),
                func.coalesce(func.sum(models.Sale.final_amount), 0),
            )
            .filter(models.Sale.status == models.SaleStatus.COMPLETED)
            .filter(models.Sale.sale_date >= first_of_month)
            .one()
        )
        total_clients = db.query(func.count(models.Client.id)).scalar() or 0
        active_products = db.query(models.Product).filter(models.Product.is_active.is_(True))
        total_products = active_products.count()
        low_stock = active_products.filter(
            models.Product.stock <= models.Product.min_stock
        ).count()

        revenue_month = _money(revenue_month)
        average_ticket = _money(revenue_month / sales_month) if sales_month else Decimal("0.00")

        return schemas.DashboardMetrics(
            sales_today=int(sales_today or 0),
            revenue_today=_money(revenue_today),
            revenue_month=revenue_month,
            sales_month=int(sales_month or 0),
            average_ticket=average_ticket,
            total_clients=int(total_clients),
            total_products=total_products,
            low_stock_products=low_stock,
        )

    @staticmethod
    def sales_by_period(
        db: Session, period: schemas.ChartPeriod = schemas.ChartPeriod.LAST_7_DAYS
    ) -> schemas.SalesByPeriodResponse:
        """Return one bucket per day (7 or 30 days) or per month (12 months).

        Every bucket in the window is present, including those without sales.
        """

        today = utcnow().date()
        if period == schemas.ChartPeriod.LAST_12_MONTHS:
            first_month = _shift_month(month_start(today), -11)
            labels = [_shift_month(first_month, offset).strftime("%Y-%m") for offset in range(12)]
            lower = day_start(first_month)
            label_format = "%Y-%m"
        else:
            days = 30 if period == schemas.ChartPeriod.LAST_30_DAYS else 7
            first_day = today - timedelta(days=days - 1)
            labels = [(first_day + timedelta(days=offset)).isoformat() for offset in range(days)]
            lower = day_start(first_day)
            label_format = "%Y-%m-%d"

        buckets: Dict[str, Tuple[int, Decimal]] = {label: (0, Decimal("0")) for label in labels}
        rows = (
            db.query(models.Sale.sale_date, models.Sale.final_amount)
            .filter(models.Sale.status == models.SaleStatus.COMPLETED)
            .filter(models.Sale.sale_date >= lower)
            .all()
        )
        for sale_date, amount in rows:
            label = as_utc(sale_date).strftime(label_format)
            if label not in buckets:
                continue
            count, revenue = buckets[label]
            buckets[label] = (count + 1, revenue + Decimal(str(amount or 0)))

        return schemas.SalesByPeriodResponse(
            period=period,
            data=[
                schemas.SalesBucket(label=label, sale_count=count, revenue=_money(revenue))
                for label, (count, revenue) in buckets.items()
            ],
        )

    @staticmethod
    def top_products(db: Session, *, limit: int = 10) -> list[schemas.TopProduct]:
        quantity = func.sum(models.SaleItem.quantity)
        rows = (
            db.query(
                models.Product.id,
                models.Product.code,
                models.Product.name,
                models.Product.category,
                quantity,
                func.sum(models.SaleItem.total_price),
            )
            .join(models.SaleItem, models.SaleItem.product_id == models.Product.id)
            .join(models.Sale, models.Sale.id == models.SaleItem.sale_id)
            .filter(models.Sale.status == models.SaleStatus.COMPLETED)
            .group_by(
                models.Product.id,
                models.Product.code,
                models.Product.name,
                models.Product.category,
            )
            .order_by(quantity.desc())
            .limit(max(limit, 1))
            .all()
        )
        return [
            schemas.TopProduct(
                product_id=product_id,
                code=code,
                name=name,
                category=category,
                quantity_sold=int(sold or 0),
                revenue=_money(revenue),
            )
            for product_id, code, name, category, sold, revenue in rows
        ]

    @staticmethod
    def top_clients(db: Session, *, limit: int = 10) -> list[schemas.TopClient]:
        purchases = (
            db.query(models.Sale.client_id, func.count(models.Sale.id))
            .filter(models.Sale.client_id.isnot(None))
            .group_by(models.Sale.client_id)
            .all()
        )
        purchase_counts = {client_id: int(count) for client_id, count in purchases}

        clients = (
            db.query(models.Client)
            .filter(models.Client.total_spent > 0)
            .order_by(models.Client.total_spent.desc(), models.Client.name.asc())
            .limit(max(limit, 1))
            .all()
        )
        return [
            schemas.TopClient(
                client_id=client.id,
                name=client.name,
                category=(
                    client.category.value
                    if isinstance(client.category, models.ClientCategory)
                    else str(client.category)
                ),
                purchases=purchase_counts.get(client.id, 0),
                total_spent=_money(client.total_spent),
            )
            for client in clients
        ]

    @staticmethod
    def category_metrics(db: Session) -> list[schemas.CategoryMetric]:
        products_per_category: Dict[str, int] = defaultdict(int)
        for category, count in (
            db.query(models.Product.category, func.count(models.Product.id))
            .filter(models.Product.is_active.is_(True))
            .group_by(models.Product.category)
            .all()
        ):
            products_per_category[category or UNCATEGORIZED] += int(count)

        sold: Dict[str, Tuple[int, Decimal]] = defaultdict(lambda: (0, Decimal("0")))
        for category, quantity, revenue in (
            db.query(
                models.Product.category,
                func.sum(models.SaleItem.quantity),
                func.sum(models.SaleItem.total_price),
            )
            .join(models.SaleItem, models.SaleItem.product_id == models.Product.id)
            .join(models.Sale, models.Sale.id == models.SaleItem.sale_id)
            .filter(models.Sale.status == models.SaleStatus.COMPLETED)
            .group_by(models.Product.category)
            .all()
        ):
            key = category or UNCATEGORIZED
            previous_quantity, previous_revenue = sold[key]
            sold[key] = (
                previous_quantity + int(quantity or 0),
                previous_revenue + Decimal(str(revenue or 0)),
            )

        categories = set(products_per_category) | set(sold)
        metrics = [
            schemas.CategoryMetric(
                category=category,
                products=products_per_category.get(category, 0),
                quantity_sold=sold[category][0] if category in sold else 0,
                revenue=_money(sold[category][1]) if category in sold else Decimal("0.00"),
            )
            for category in categories
        ]
        return sorted(metrics, key=lambda metric: (-metric.revenue, metric.category))
