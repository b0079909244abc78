from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.domain.core.enums import ProductStatus


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    sku: Mapped[str | None] = mapped_column(String(64), unique=True)
    barcode: Mapped[str | None] = mapped_column(String(20), index=True)
    brand: Mapped[str | None] = mapped_column(String)
    cost: Mapped[Numeric] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    retail_price: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    wholesale_price: Mapped[Numeric] = mapped_column(Numeric(12, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[ProductStatus] = mapped_column(Enum(ProductStatus), default=ProductStatus.active, nullable=False)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped["DateTime"] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    volumes = relationship("ProductVolume", back_populates="product", cascade="all, delete-orphan")


class ProductVolume(Base):
    __tablename__ = "product_volumes"
    __table_args__ = (
        UniqueConstraint("product_id", "size", "unit", name="uq_product_volume_size_unit"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(String(16), nullable=False)
    unit: Mapped[str] = mapped_column(String(8), nullable=False)
    price_adjustment: Mapped[Numeric] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    barcode: Mapped[str | None] = mapped_column(String(20), index=True)
    product = relationship("Product", back_populates="volumes")

    @property
    def label(self) -> str:
        return f"{self.size}{self.unit}"
