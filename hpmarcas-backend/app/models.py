from app.domain.core.enums import (
    CouponType,
    CustomerType,
    DiscountType,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
)
from app.domain.catalog.models import Product, ProductVolume
from app.domain.coupon.models import Coupon, CouponUsage
from app.domain.customer.models import Customer, CustomerAddress
from app.domain.order.models import Sale, SaleItem
from app.domain.pdv.models import PdvDraft

__all__ = [
    "CouponType",
    "CustomerType",
    "DiscountType",
    "OrderSource",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ProductStatus",
    "Product",
    "ProductVolume",
    "Coupon",
    "CouponUsage",
    "Customer",
    "CustomerAddress",
    "Sale",
    "SaleItem",
    "PdvDraft",
]
