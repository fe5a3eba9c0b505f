"""Printable PDF receipts for individual sales."""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from io import BytesIO
from typing import Any, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .. import models
from ..time_utils import as_utc

LOGGER = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
CURRENCY = "MZN"
WALK_IN_LABEL = "Walk-in customer"
PRODUCT_NAME_WIDTH = 40


def _amount(value: Any) -> str:
    return f"{Decimal(str(value or 0)):.2f} {CURRENCY}"


def _label(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def receipt_filename(sale: models.Sale) -> str:
    return f"receipt_{sale.sale_number}.pdf"


class ReceiptService:
    """Render a sale as a one-page A4 receipt."""

    @staticmethod
    def _styles() -> dict:
        sheet = getSampleStyleSheet()
        return {
            "title": ParagraphStyle("ReceiptTitle", parent=sheet["Title"], fontSize=20),
            "subtitle": ParagraphStyle(
                "ReceiptSubtitle", parent=sheet["Normal"], fontSize=12, alignment=TA_CENTER
            ),
            "body": sheet["Normal"],
            "footer": ParagraphStyle(
                "ReceiptFooter", parent=sheet["Normal"], fontSize=8, alignment=TA_CENTER
            ),
        }

    @staticmethod
    def _items_table(sale: models.Sale) -> Table:
        rows: List[List[str]] = [["Item", "Qty", "Price", "Total"]]
        for item in sale.items:
            name = item.product_name or f"Product {item.product_id}"
            rows.append(
                [
                    name[:PRODUCT_NAME_WIDTH],
                    str(item.quantity),
                    _amount(item.unit_price),
                    _amount(item.total_price),
                ]
            )
        summary_start = len(rows)
        rows.extend(
            [
                ["", "", "Subtotal", _amount(sale.subtotal)],
                ["", "", "Discount", _amount(sale.discount)],
                ["", "", "Tax", _amount(sale.tax)],
                ["", "", "TOTAL", _amount(sale.final_amount)],
            ]
        )

        table = Table(rows, colWidths=[85 * mm, 15 * mm, 35 * mm, 35 * mm])
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("LINEBELOW", (0, 0), (-1, 0), 0.75, colors.black),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("LINEABOVE", (2, summary_start), (-1, summary_start), 0.5, colors.grey),
                    ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
                ]
            )
        )
        return table

    @classmethod
    def sale_receipt(cls, sale: models.Sale) -> bytes:
        styles = cls._styles()
        sold_at = as_utc(sale.sale_date)
        story = [
            Paragraph("BIZZFLOW CRM", styles["title"]),
            Paragraph("Sale receipt", styles["subtitle"]),
            Spacer(1, 8 * mm),
            Paragraph(f"Number: {escape(sale.sale_number)}", styles["body"]),
            Paragraph(f"Date: {sold_at:%Y-%m-%d %H:%M} UTC", styles["body"]),
            Paragraph(f"Client: {escape(sale.client_name or WALK_IN_LABEL)}", styles["body"]),
            Paragraph(f"Seller: {escape(sale.seller_name or '-')}", styles["body"]),
            Spacer(1, 6 * mm),
            cls._items_table(sale),
            Spacer(1, 6 * mm),
            Paragraph(f"Payment method: {_label(sale.payment_method)}", styles["body"]),
            Spacer(1, 12 * mm),
            Paragraph("Thank you for your purchase!", styles["footer"]),
            Paragraph("BizzFlow CRM - Commercial management system", styles["footer"]),
        ]

        buffer = BytesIO()
        document = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=18 * mm,
            bottomMargin=18 * mm,
            title=f"Receipt {sale.sale_number}",
        )
        document.build(story)
        content = buffer.getvalue()
        LOGGER.info("Rendered receipt for sale %s (%d bytes)", sale.sale_number, len(content))
        return content
