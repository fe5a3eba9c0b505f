"""Spreadsheet and backup exports of the commercial data."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from io import BytesIO
from typing import Any, Dict, Iterable, Optional

import pandas as pd
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..time_utils import as_utc, date_range_bounds, utcnow

LOGGER = logging.getLogger(__name__)

EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_ROW_LIMIT = 100_000

LOW_STOCK_LABEL = "Low stock"
NORMAL_STOCK_LABEL = "Normal"


def _cell(value: Any) -> Any:
    """Convert ORM values into types openpyxl can store."""

    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return as_utc(value).replace(tzinfo=None)
    if isinstance(value, Enum):
        return value.value
    return value


def _frame(rows: Iterable[Dict[str, Any]], columns: list[str]) -> pd.DataFrame:
    records = [{key: _cell(row.get(key)) for key in columns} for row in rows]
    return pd.DataFrame.from_records(records, columns=columns)


def write_workbook(sheets: Dict[str, pd.DataFrame]) -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, dataframe in sheets.items():
            dataframe.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def timestamped_filename(stem: str, extension: str) -> str:
    return f"{stem}_{utcnow():%Y%m%d_%H%M%S}.{extension}"


def _client_row(client: models.Client) -> Dict[str, Any]:
    return {
        "ID": client.id,
        "Name": client.name,
        "Email": client.email,
        "Phone": client.phone,
        "Category": client.category,
        "City": client.city,
        "Province": client.province,
        "Total spent": client.total_spent,
        "Last purchase": client.last_purchase,
        "Created at": client.created_at,
    }


CLIENT_COLUMNS = [
    "ID",
    "Name",
    "Email",
    "Phone",
    "Category",
    "City",
    "Province",
    "Total spent",
    "Last purchase",
    "Created at",
]

PRODUCT_COLUMNS = [
    "Code",
    "Name",
    "Description",
    "Category",
    "Unit price",
    "Cost price",
    "Stock",
    "Minimum stock",
    "Supplier",
    "Created at",
]

INVENTORY_COLUMNS = PRODUCT_COLUMNS + ["Inventory value", "Status"]

SALE_COLUMNS = [
    "Sale number",
    "Client",
    "Seller",
    "Subtotal",
    "Discount",
    "Tax",
    "Final amount",
    "Payment method",
    "Status",
    "Sale date",
]


def _product_row(product: models.Product) -> Dict[str, Any]:
    return {
        "Code": product.code,
        "Name": product.name,
        "Description": product.description,
        "Category": product.category,
        "Unit price": product.unit_price,
        "Cost price": product.cost_price,
        "Stock": product.stock,
        "Minimum stock": product.min_stock,
        "Supplier": product.supplier,
        "Created at": product.created_at,
    }


def _sale_row(sale: models.Sale) -> Dict[str, Any]:
    return {
        "Sale number": sale.sale_number,
        "Client": sale.client_name,
        "Seller": sale.seller_name,
        "Subtotal": sale.subtotal,
        "Discount": sale.discount,
        "Tax": sale.tax,
        "Final amount": sale.final_amount,
        "Payment method": sale.payment_method,
        "Status": sale.status,
        "Sale date": sale.sale_date,
    }


class ExportService:
    """Builds Excel workbooks and JSON backups from the live tables."""

    @staticmethod
    def clients_workbook(db: Session) -> bytes:
        clients = db.query(models.Client).order_by(models.Client.name).limit(EXPORT_ROW_LIMIT).all()
        LOGGER.info("Exporting %s clients", len(clients))
        return write_workbook({"Clients": _frame(map(_client_row, clients), CLIENT_COLUMNS)})

    @staticmethod
    def products_workbook(db: Session) -> bytes:
        products = (
            db.query(models.Product)
            .filter(models.Product.is_active.is_(True))
            .order_by(models.Product.name)
            .limit(EXPORT_ROW_LIMIT)
            .all()
        )
        LOGGER.info("Exporting %s products", len(products))
        return write_workbook({"Products": _frame(map(_product_row, products), PRODUCT_COLUMNS)})

    @staticmethod
    def sales_workbook(
        db: Session,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> bytes:
        query = db.query(models.Sale).options(
            joinedload(models.Sale.client), joinedload(models.Sale.seller)
        )
        lower, upper = date_range_bounds(start_date, end_date)
        if lower is not None:
            query = query.filter(models.Sale.sale_date >= lower)
        if upper is not None:
            query = query.filter(models.Sale.sale_date < upper)
        sales = query.order_by(models.Sale.sale_date.desc()).limit(EXPORT_ROW_LIMIT).all()
        LOGGER.info("Exporting %s sales", len(sales))
        return write_workbook({"Sales": _frame(map(_sale_row, sales), SALE_COLUMNS)})

    @staticmethod
    def inventory_workbook(db: Session, *, low_stock_only: bool = False) -> bytes:
        query = db.query(models.Product).filter(models.Product.is_active.is_(True))
        if low_stock_only:
            query = query.filter(models.Product.stock <= models.Product.min_stock)

        rows = []
        for product in query.order_by(models.Product.name).limit(EXPORT_ROW_LIMIT).all():
            row = _product_row(product)
            row["Inventory value"] = Decimal(str(product.unit_price or 0)) * int(product.stock or 0)
            row["Status"] = LOW_STOCK_LABEL if product.is_low_stock else NORMAL_STOCK_LABEL
            rows.append(row)
        return write_workbook({"Inventory": _frame(rows, INVENTORY_COLUMNS)})

    @staticmethod
    def backup_document(db: Session) -> Dict[str, Any]:
        """Return every client, product, sale and sale item as a JSON-ready dict."""

        clients = db.query(models.Client).order_by(models.Client.id).all()
        products = db.query(models.Product).order_by(models.Product.id).all()
        sales = (
            db.query(models.Sale)
            .options(joinedload(models.Sale.client), joinedload(models.Sale.seller))
            .order_by(models.Sale.id)
            .all()
        )
        items = (
            db.query(models.SaleItem)
            .options(joinedload(models.SaleItem.product))
            .order_by(models.SaleItem.id)
            .all()
        )
        document = {
            "timestamp": utcnow().isoformat(),
            "clients": [schemas.ClientRead.model_validate(client).model_dump(mode="json") for client in clients],
            "products": [
                schemas.ProductRead.model_validate(product).model_dump(mode="json") for product in products
            ],
            "sales": [schemas.SaleRead.model_validate(sale).model_dump(mode="json") for sale in sales],
            "sale_items": [
                {"sale_id": item.sale_id, **schemas.SaleItemRead.model_validate(item).model_dump(mode="json")}
                for item in items
            ],
            "metadata": {
                "total_clients": len(clients),
                "total_products": len(products),
                "total_sales": len(sales),
                "total_items": len(items),
            },
        }
        LOGGER.info("Backup document generated with %s sales", len(sales))
        return document

    @staticmethod
    def backup_workbook(db: Session) -> bytes:
        clients = db.query(models.Client).order_by(models.Client.id).all()
        products = db.query(models.Product).order_by(models.Product.id).all()
        sales = (
            db.query(models.Sale)
            .options(joinedload(models.Sale.client), joinedload(models.Sale.seller))
            .order_by(models.Sale.id)
            .all()
        )
        return write_workbook(
            {
                "Clients": _frame(map(_client_row, clients), CLIENT_COLUMNS),
                "Products": _frame(map(_product_row, products), PRODUCT_COLUMNS),
                "Sales": _frame(map(_sale_row, sales), SALE_COLUMNS),
            }
        )
