"""sales schema: catalog, customers, coupons, sales, pdv drafts

Revision ID: 7c1e2a9f4b10
Revises:
Create Date: 2026-10-17 09:12:05.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "7c1e2a9f4b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

customer_type = sa.Enum("retail", "wholesale", name="customertype")
product_status = sa.Enum("active", "inactive", name="productstatus")
coupon_type = sa.Enum("percentage", "fixed", name="coupontype")
payment_method = sa.Enum("pix", "cash", "credit", "debit", "transfer", name="paymentmethod")
payment_status = sa.Enum("pending", "approved", "processing", "rejected", "cancelled", "refunded", name="paymentstatus")
order_status = sa.Enum("pending", "confirmed", "cancelled", "refunded", "completed", name="orderstatus")
order_source = sa.Enum("ecommerce", "pdv", name="ordersource")


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("barcode", sa.String(length=20), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("retail_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("wholesale_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", product_status, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
    )
    op.create_index("ix_products_barcode", "products", ["barcode"])

    op.create_table(
        "product_volumes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("size", sa.String(length=16), nullable=False),
        sa.Column("unit", sa.String(length=8), nullable=False),
        sa.Column("price_adjustment", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("barcode", sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "size", "unit", name="uq_product_volume_size_unit"),
    )
    op.create_index("ix_product_volumes_product_id", "product_volumes", ["product_id"])
    op.create_index("ix_product_volumes_barcode", "product_volumes", ["barcode"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("document", sa.String(length=18), nullable=True),
        sa.Column("type", customer_type, nullable=False, server_default="retail"),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customers_email", "customers", ["email"])

    op.create_table(
        "customer_addresses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=False),
        sa.Column("postal_code", sa.CHAR(length=8), nullable=False),
        sa.Column("street", sa.Text(), nullable=False),
        sa.Column("number", sa.String(), nullable=False),
        sa.Column("complement", sa.Text(), nullable=True),
        sa.Column("district", sa.Text(), nullable=True),
        sa.Column("city", sa.String(), nullable=False),
        sa.Column("state", sa.CHAR(length=2), nullable=False),
        sa.Column("is_preferred", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customer_addresses_customer_id", "customer_addresses", ["customer_id"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", coupon_type, nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_discount", sa.Numeric(12, 2), nullable=True),
        sa.Column("min_order_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=True),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("customer_type", customer_type, nullable=False, server_default="retail"),
        sa.Column("shipping_address_id", sa.String(length=36), nullable=True),
        sa.Column("shipping_method", sa.String(length=32), nullable=True),
        sa.Column("shipping_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("coupon_id", sa.String(length=36), nullable=True),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False, server_default="pending"),
        sa.Column("status", order_status, nullable=False, server_default="pending"),
        sa.Column("order_source", order_source, nullable=False),
        sa.Column("payment_external_id", sa.String(length=64), nullable=True),
        sa.Column("payment_method_detail", sa.Text(), nullable=True),
        sa.Column("stock_applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=True),
        sa.Column("change_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("salesperson_name", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["shipping_address_id"], ["customer_addresses.id"]),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sales_customer_id", "sales", ["customer_id"])
    op.create_index("ix_sales_order_source", "sales", ["order_source"])
    op.create_index("ix_sales_payment_external_id", "sales", ["payment_external_id"])

    op.create_table(
        "sale_items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("sale_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("volume_id", sa.String(length=36), nullable=True),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("product_sku", sa.String(length=64), nullable=True),
        sa.Column("volume_label", sa.String(length=24), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["volume_id"], ["product_volumes.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("coupon_id", sa.String(length=36), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["sales.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_order"),
        sa.UniqueConstraint("coupon_id", "customer_id", name="uq_coupon_usage_customer"),
    )
    op.create_index("ix_coupon_usage_coupon_id", "coupon_usage", ["coupon_id"])
    op.create_index("ix_coupon_usage_customer_id", "coupon_usage", ["customer_id"])

    op.create_table(
        "pdv_drafts",
        sa.Column("session_key", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("recovery_pending", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("session_key"),
    )


def downgrade() -> None:
    op.drop_table("pdv_drafts")
    op.drop_index("ix_coupon_usage_customer_id", table_name="coupon_usage")
    op.drop_index("ix_coupon_usage_coupon_id", table_name="coupon_usage")
    op.drop_table("coupon_usage")
    op.drop_index("ix_sale_items_sale_id", table_name="sale_items")
    op.drop_table("sale_items")
    op.drop_index("ix_sales_payment_external_id", table_name="sales")
    op.drop_index("ix_sales_order_source", table_name="sales")
    op.drop_index("ix_sales_customer_id", table_name="sales")
    op.drop_table("sales")
    op.drop_table("coupons")
    op.drop_index("ix_customer_addresses_customer_id", table_name="customer_addresses")
    op.drop_table("customer_addresses")
    op.drop_index("ix_customers_email", table_name="customers")
    op.drop_table("customers")
    op.drop_index("ix_product_volumes_barcode", table_name="product_volumes")
    op.drop_index("ix_product_volumes_product_id", table_name="product_volumes")
    op.drop_table("product_volumes")
    op.drop_index("ix_products_barcode", table_name="products")
    op.drop_table("products")
    for enum_type in (order_source, order_status, payment_status, payment_method, coupon_type, product_status, customer_type):
        enum_type.drop(op.get_bind(), checkfirst=True)
