from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app import models


# Orders (e-commerce)


class VolumeRef(BaseModel):
    id: Optional[str] = None
    size: Optional[str] = None
    unit: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    volume: Optional[VolumeRef] = None


class CreateOrderIn(BaseModel):
    customer_id: Optional[str] = None
    shipping_address_id: Optional[str] = None
    shipping_cost: float = Field(default=0, ge=0)
    shipping_method: Optional[str] = None
    coupon_code: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(default_factory=list)


class SaleItemOut(BaseModel):
    id: str
    product_id: str
    volume_id: Optional[str] = None
    product_name: str
    product_sku: Optional[str] = None
    volume_label: Optional[str] = None
    quantity: int
    unit_price: float
    discount_amount: float
    total_price: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_type: models.CustomerType
    shipping_address_id: Optional[str] = None
    shipping_method: Optional[str] = None
    shipping_cost: float
    subtotal: float
    discount_percent: float
    discount_amount: float
    total: float
    coupon_id: Optional[str] = None
    payment_method: models.PaymentMethod
    payment_status: models.PaymentStatus
    status: models.OrderStatus
    order_source: models.OrderSource
    payment_external_id: Optional[str] = None
    amount_paid: Optional[float] = None
    change_amount: Optional[float] = None
    salesperson_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[SaleItemOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CreatedOrderOut(BaseModel):
    id: str
    status: models.OrderStatus
    payment_status: models.PaymentStatus
    total_amount: float
    subtotal_amount: float
    coupon_discount: float
    shipping_cost: float
    payment_external_id: Optional[str] = None


class CreateOrderOut(BaseModel):
    success: bool = True
    order: CreatedOrderOut
    payment_preference_id: str
    payment_init_point: Optional[str] = None


class OrderStatusOut(BaseModel):
    orderId: str
    status: models.OrderStatus
    paymentStatus: models.PaymentStatus
    paymentExternalId: Optional[str] = None
    updatedAt: Optional[datetime] = None
    isPaid: bool
    isConfirmed: bool


# Payments (e-commerce)


class PayerIn(BaseModel):
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    identification_number: Optional[str] = None


class PaymentProcessIn(BaseModel):
    preference_id: Optional[str] = None
    payment_method_id: Optional[str] = "pix"
    amount: Optional[float] = Field(default=None, gt=0)
    payer: Optional[PayerIn] = None


class PaymentOut(BaseModel):
    id: str
    status: Optional[str] = None
    status_detail: Optional[str] = None
    payment_method_id: Optional[str] = None
    external_reference: Optional[str] = None
    transaction_amount: Optional[float] = None
    point_of_interaction: Optional[dict] = None

    class Config:
        from_attributes = True


class PaymentProcessOut(BaseModel):
    success: bool = True
    order_id: str
    payment: PaymentOut


# Coupons


class CouponValidateIn(BaseModel):
    code: Optional[str] = None
    customer_id: Optional[str] = None
    order_total: Optional[float] = None


class CouponOut(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    type: models.CouponType
    value: float
    min_order_value: Optional[float] = None
    max_discount: Optional[float] = None
    end_date: Optional[datetime] = None

    class Config:
        from_attributes = True


# PDV


class PdvItemIn(BaseModel):
    product_id: str
    quantity: int = Field(default=1, gt=0)
    volume_id: Optional[str] = None


class PdvQuantityIn(BaseModel):
    quantity: int


class PdvItemDiscountIn(BaseModel):
    type: models.DiscountType
    value: float = Field(ge=0)


class PdvManualPriceIn(BaseModel):
    unit_price: float = Field(ge=0)


class PdvOrderDiscountIn(BaseModel):
    type: Optional[models.DiscountType] = None
    value: Optional[float] = Field(default=None, ge=0)


class PdvCustomerIn(BaseModel):
    customer_id: Optional[str] = None
    customer_type: Optional[models.CustomerType] = None


class PdvPaymentIn(BaseModel):
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class PdvFinalizeIn(BaseModel):
    salesperson_name: Optional[str] = None
    payment_method: Optional[str] = None
    amount_paid: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class PdvCartItemOut(BaseModel):
    key: str
    product_id: str
    product_name: str
    product_sku: Optional[str] = None
    volume_id: Optional[str] = None
    volume_label: Optional[str] = None
    quantity: int
    available_stock: Optional[int] = None
    list_price: float
    unit_price: float
    discount_type: Optional[models.DiscountType] = None
    discount_value: Optional[float] = None
    manual_price: Optional[float] = None
    discount_amount: float
    subtotal: float


class PdvCartOut(BaseModel):
    session_key: str
    recovered: bool = False
    removed_items: List[dict] = Field(default_factory=list)
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_type: models.CustomerType
    items: List[PdvCartItemOut] = Field(default_factory=list)
    item_count: int
    discount_type: Optional[models.DiscountType] = None
    discount_value: Optional[float] = None
    payment_method: Optional[models.PaymentMethod] = None
    notes: Optional[str] = None
    subtotal: float
    discount_amount: float
    total: float
    cash_suggestions: List[float] = Field(default_factory=list)


class PdvSaleOut(BaseModel):
    success: bool = True
    sale: OrderOut
    change_amount: float


class BarcodeVolumeOut(BaseModel):
    id: str
    size: str
    unit: str
    price_adjustment: float
    barcode: Optional[str] = None

    class Config:
        from_attributes = True


class BarcodeLookupOut(BaseModel):
    product_id: str
    name: str
    sku: Optional[str] = None
    barcode: Optional[str] = None
    retail_price: float
    wholesale_price: float
    stock: int
    volume: Optional[BarcodeVolumeOut] = None
