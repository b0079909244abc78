from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.domain.core.enums import CustomerType, OrderSource, OrderStatus, PaymentMethod, PaymentStatus


class Sale(Base):
    __tablename__ = "sales"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customers.id"), index=True)
    customer_name: Mapped[str | None] = mapped_column(String)
    customer_type: Mapped[CustomerType] = mapped_column(Enum(CustomerType), default=CustomerType.retail, nullable=False)
    shipping_address_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customer_addresses.id"))
    shipping_method: Mapped[str | None] = mapped_column(String(32))
    shipping_cost: Mapped[Numeric] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    subtotal: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    discount_percent: Mapped[Numeric] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    discount_amount: Mapped[Numeric] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    total: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    coupon_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("coupons.id", ondelete="SET NULL"))
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.pending, nullable=False
    )
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.pending, nullable=False)
    order_source: Mapped[OrderSource] = mapped_column(Enum(OrderSource), nullable=False, index=True)
    payment_external_id: Mapped[str | None] = mapped_column(String(64), index=True)
    payment_method_detail: Mapped[str | None] = mapped_column(Text)
    stock_applied_at: Mapped["DateTime | None"] = mapped_column(DateTime(timezone=True))
    amount_paid: Mapped[Numeric | None] = mapped_column(Numeric(12, 2))
    change_amount: Mapped[Numeric | None] = mapped_column(Numeric(12, 2))
    salesperson_name: Mapped[str | None] = mapped_column(String)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped["DateTime"] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")


class SaleItem(Base):
    __tablename__ = "sale_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sale_id: Mapped[str] = mapped_column(String(36), ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False)
    volume_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product_volumes.id", ondelete="SET NULL"))
    product_name: Mapped[str] = mapped_column(String, nullable=False)
    product_sku: Mapped[str | None] = mapped_column(String(64))
    volume_label: Mapped[str | None] = mapped_column(String(24))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Numeric] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    total_price: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    sale = relationship("Sale", back_populates="items")
