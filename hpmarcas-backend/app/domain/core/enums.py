import enum


class CustomerType(enum.Enum):
    retail = "retail"
    wholesale = "wholesale"


class ProductStatus(enum.Enum):
    active = "active"
    inactive = "inactive"


class OrderStatus(enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    refunded = "refunded"
    completed = "completed"


class PaymentStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    processing = "processing"
    rejected = "rejected"
    cancelled = "cancelled"
    refunded = "refunded"


class PaymentMethod(enum.Enum):
    pix = "pix"
    cash = "cash"
    credit = "credit"
    debit = "debit"
    transfer = "transfer"


class OrderSource(enum.Enum):
    ecommerce = "ecommerce"
    pdv = "pdv"


class CouponType(enum.Enum):
    percentage = "percentage"
    fixed = "fixed"


class DiscountType(enum.Enum):
    percent = "percent"
    amount = "amount"
