"""Users, clients, products, sales and sale items."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20260101_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=80), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="seller"),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(create_constraint=False),
            nullable=False,
            server_default=sa.true(),
        ),
        *_timestamps(),
    )

    op.create_table(
        "clients",
        sa.Column("client_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("province", sa.String(length=120), nullable=True),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("last_purchase", sa.Date(), nullable=True),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("total_spent >= 0", name="ck_clients_total_spent_non_negative"),
    )
    op.create_index("clients_name_idx", "clients", ["name"], unique=False)
    op.create_index("clients_email_idx", "clients", ["email"], unique=False)
    op.create_index("clients_category_idx", "clients", ["category"], unique=False)

    op.create_table(
        "products",
        sa.Column("product_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("supplier", sa.String(length=200), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(create_constraint=False),
            nullable=False,
            server_default=sa.true(),
        ),
        *_timestamps(),
        sa.CheckConstraint("unit_price >= 0", name="ck_products_unit_price_non_negative"),
        sa.CheckConstraint(
            "cost_price IS NULL OR cost_price >= 0",
            name="ck_products_cost_price_non_negative",
        ),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        sa.UniqueConstraint("code", name="uq_products_code"),
    )
    op.create_index("products_active_idx", "products", ["is_active"], unique=False)
    op.create_index("products_category_idx", "products", ["category"], unique=False)

    op.create_table(
        "sales",
        sa.Column("sale_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sale_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.client_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "seller_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("final_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False, server_default="cash"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "sale_date",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("subtotal >= 0", name="ck_sales_subtotal_non_negative"),
        sa.CheckConstraint("discount >= 0", name="ck_sales_discount_non_negative"),
        sa.CheckConstraint("tax >= 0", name="ck_sales_tax_non_negative"),
        sa.CheckConstraint("final_amount >= 0", name="ck_sales_final_amount_non_negative"),
    )
    op.create_index("sales_sale_date_idx", "sales", ["sale_date"], unique=False)
    op.create_index("sales_client_idx", "sales", ["client_id"], unique=False)
    op.create_index("sales_seller_idx", "sales", ["seller_id"], unique=False)
    op.create_index("sales_payment_method_idx", "sales", ["payment_method"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("sale_item_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "sale_id",
            sa.Integer(),
            sa.ForeignKey("sales.sale_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.product_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_sale_items_unit_price_non_negative"),
        sa.CheckConstraint("total_price >= 0", name="ck_sale_items_total_price_non_negative"),
    )
    op.create_index("sale_items_sale_idx", "sale_items", ["sale_id"], unique=False)
    op.create_index("sale_items_product_idx", "sale_items", ["product_id"], unique=False)


def downgrade() -> None:
    op.drop_index("sale_items_product_idx", table_name="sale_items")
    op.drop_index("sale_items_sale_idx", table_name="sale_items")
    op.drop_table("sale_items")

    op.drop_index("sales_payment_method_idx", table_name="sales")
    op.drop_index("sales_seller_idx", table_name="sales")
    op.drop_index("sales_client_idx", table_name="sales")
    op.drop_index("sales_sale_date_idx", table_name="sales")
    op.drop_table("sales")

    op.drop_index("products_category_idx", table_name="products")
    op.drop_index("products_active_idx", table_name="products")
    op.drop_table("products")

    op.drop_index("clients_category_idx", table_name="clients")
    op.drop_index("clients_email_idx", table_name="clients")
    op.drop_index("clients_name_idx", table_name="clients")
    op.drop_table("clients")

    op.drop_table("users")
