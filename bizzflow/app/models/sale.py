"""Models representing sales and their line items."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class PaymentMethod(str, enum.Enum):
    """Supported payment methods."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHECK = "check"


class SaleStatus(str, enum.Enum):
    """Lifecycle status of a sale header."""

    COMPLETED = "completed"
    # Only carried by sales imported from earlier systems; the API never sets it.
    CANCELLED = "cancelled"


PAYMENT_METHOD_ENUM = Enum(
    PaymentMethod,
    name="payment_method_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)

SALE_STATUS_ENUM = Enum(
    SaleStatus,
    name="sale_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Sale(Base):
    """Represents one checkout transaction."""

    __tablename__ = "sales"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_sales_subtotal_non_negative"),
        CheckConstraint("discount >= 0", name="ck_sales_discount_non_negative"),
        CheckConstraint("tax >= 0", name="ck_sales_tax_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_sales_final_amount_non_negative"),
    )

    id = Column("sale_id", Integer, primary_key=True, autoincrement=True)
    sale_number = Column(String(32), nullable=False, unique=True)
    client_id = Column(
        Integer,
        ForeignKey("clients.client_id", ondelete="SET NULL"),
        nullable=True,
    )
    seller_id = Column(
        Integer,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    final_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(PAYMENT_METHOD_ENUM, nullable=False, default=PaymentMethod.CASH)
    status = Column(SALE_STATUS_ENUM, nullable=False, default=SaleStatus.COMPLETED)
    notes = Column(Text, nullable=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    client = relationship("Client", back_populates="sales")
    seller = relationship("User", back_populates="sales")
    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SaleItem.id",
    )

    @property
    def client_name(self) -> str | None:
        return self.client.name if self.client is not None else None

    @property
    def seller_name(self) -> str | None:
        return self.seller.name if self.seller is not None else None


Index("sales_sale_date_idx", Sale.sale_date)
Index("sales_client_idx", Sale.client_id)
Index("sales_seller_idx", Sale.seller_id)
Index("sales_payment_method_idx", Sale.payment_method)


class SaleItem(Base):
    """Line items that compose a sale."""

    __tablename__ = "sale_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sale_items_unit_price_non_negative"),
        CheckConstraint("total_price >= 0", name="ck_sale_items_total_price_non_negative"),
    )

    id = Column("sale_item_id", Integer, primary_key=True, autoincrement=True)
    sale_id = Column(
        Integer,
        ForeignKey("sales.sale_id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = Column(
        Integer,
        ForeignKey("products.product_id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product is not None else None

    @property
    def product_code(self) -> str | None:
        return self.product.code if self.product is not None else None


Index("sale_items_sale_idx", SaleItem.sale_id)
Index("sale_items_product_idx", SaleItem.product_id)
