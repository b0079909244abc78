"""
Carrinho/venda em montagem (PDV e pré-visualização).
Container puro: não acessa banco. Toda mutação recalcula subtotal, desconto e total.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from app.domain.core.enums import CustomerType, DiscountType, PaymentMethod
from app.errors import NotFound, ValidationFailed
from app.services.discounts import discount_value
from app.services.pricing import ZERO, Number, clamp_money, round_money, safe_add, safe_multiply, safe_subtract


def item_key(product_id: str, volume_id: str | None = None) -> str:
    return f"{product_id}:{volume_id or ''}"


def tier_price(retail_price: Number, wholesale_price: Number, customer_type: CustomerType) -> Decimal:
    if customer_type == CustomerType.wholesale:
        return round_money(wholesale_price)
    return round_money(retail_price)


@dataclass
class CartItem:
    product_id: str
    product_name: str
    quantity: int
    retail_price: Decimal
    wholesale_price: Decimal
    product_sku: str | None = None
    volume_id: str | None = None
    volume_label: str | None = None
    price_adjustment: Decimal = ZERO
    available_stock: int | None = None
    customer_type: CustomerType = CustomerType.retail
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    manual_price: Decimal | None = None

    @property
    def key(self) -> str:
        return item_key(self.product_id, self.volume_id)

    @property
    def list_price(self) -> Decimal:
        return safe_add(tier_price(self.retail_price, self.wholesale_price, self.customer_type), self.price_adjustment)

    @property
    def unit_price(self) -> Decimal:
        if self.manual_price is not None:
            return round_money(self.manual_price)
        return self.list_price

    @property
    def gross_total(self) -> Decimal:
        return safe_multiply(self.unit_price, self.quantity)

    @property
    def discount_amount(self) -> Decimal:
        if self.manual_price is not None:
            return ZERO
        return discount_value(self.gross_total, self.discount_type, self.discount_value)

    @property
    def subtotal(self) -> Decimal:
        return safe_subtract(self.gross_total, self.discount_amount)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "retail_price": str(self.retail_price),
            "wholesale_price": str(self.wholesale_price),
            "volume_id": self.volume_id,
            "volume_label": self.volume_label,
            "price_adjustment": str(self.price_adjustment),
            "available_stock": self.available_stock,
            "customer_type": self.customer_type.value,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "discount_value": str(self.discount_value) if self.discount_value is not None else None,
            "manual_price": str(self.manual_price) if self.manual_price is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(
            product_id=data["product_id"],
            product_name=data.get("product_name") or "",
            product_sku=data.get("product_sku"),
            quantity=int(data.get("quantity") or 0),
            retail_price=round_money(data.get("retail_price")),
            wholesale_price=round_money(data.get("wholesale_price")),
            volume_id=data.get("volume_id"),
            volume_label=data.get("volume_label"),
            price_adjustment=round_money(data.get("price_adjustment")),
            available_stock=data.get("available_stock"),
            customer_type=CustomerType(data.get("customer_type") or CustomerType.retail.value),
            discount_type=DiscountType(data["discount_type"]) if data.get("discount_type") else None,
            discount_value=round_money(data["discount_value"]) if data.get("discount_value") is not None else None,
            manual_price=round_money(data["manual_price"]) if data.get("manual_price") is not None else None,
        )


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    customer_id: str | None = None
    customer_name: str | None = None
    customer_type: CustomerType = CustomerType.retail
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    payment_method: PaymentMethod | None = None
    notes: str | None = None
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total: Decimal = ZERO

    def __post_init__(self) -> None:
        self.recalculate()

    # --- consultas ---

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def discount_percent(self) -> Decimal:
        if self.discount_type == DiscountType.percent and self.discount_value is not None:
            return clamp_money(self.discount_value, 0, 100)
        return ZERO

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def get_item(self, key: str) -> CartItem:
        for item in self.items:
            if item.key == key:
                return item
        raise NotFound("Item não encontrado no carrinho", error="cart_item_not_found", item_key=key)

    # --- mutações ---

    def recalculate(self) -> None:
        self.subtotal = safe_add(*[item.subtotal for item in self.items]) if self.items else ZERO
        self.discount_amount = discount_value(self.subtotal, self.discount_type, self.discount_value)
        self.total = clamp_money(safe_subtract(self.subtotal, self.discount_amount))

    def add_item(self, item: CartItem) -> CartItem:
        if item.quantity <= 0:
            raise ValidationFailed("Quantidade deve ser maior que zero", error="invalid_quantity")
        item.customer_type = self.customer_type
        for existing in self.items:
            if existing.key == item.key:
                self._check_stock(existing, existing.quantity + item.quantity, item.available_stock)
                existing.quantity += item.quantity
                if item.available_stock is not None:
                    existing.available_stock = item.available_stock
                self.recalculate()
                return existing
        self._check_stock(item, item.quantity, item.available_stock)
        self.items.append(item)
        self.recalculate()
        return item

    def update_quantity(self, key: str, quantity: int) -> None:
        item = self.get_item(key)
        if quantity <= 0:
            self.remove_item(key)
            return
        self._check_stock(item, quantity, item.available_stock)
        item.quantity = quantity
        self.recalculate()

    def remove_item(self, key: str) -> None:
        item = self.get_item(key)
        self.items.remove(item)
        self.recalculate()

    def set_customer(self, customer_id: str | None, customer_name: str | None, customer_type: CustomerType) -> None:
        self.customer_id = customer_id
        self.customer_name = customer_name
        self.set_customer_type(customer_type)

    def set_customer_type(self, customer_type: CustomerType) -> None:
        self.customer_type = customer_type
        for item in self.items:
            item.customer_type = customer_type
        self.recalculate()

    def apply_item_discount(self, key: str, discount_type: DiscountType, value: Number) -> None:
        item = self.get_item(key)
        item.discount_type = discount_type
        item.discount_value = round_money(value)
        item.manual_price = None
        self.recalculate()

    def apply_manual_price(self, key: str, unit_price: Number) -> None:
        price = round_money(unit_price)
        if price < 0:
            raise ValidationFailed("Preço não pode ser negativo", error="invalid_price")
        item = self.get_item(key)
        item.manual_price = price
        item.discount_type = None
        item.discount_value = None
        self.recalculate()

    def clear_item_adjustments(self, key: str) -> None:
        item = self.get_item(key)
        item.manual_price = None
        item.discount_type = None
        item.discount_value = None
        self.recalculate()

    def apply_order_discount(self, discount_type: DiscountType | None, value: Number | None) -> None:
        if discount_type is None or value is None or round_money(value) <= 0:
            self.discount_type = None
            self.discount_value = None
        else:
            self.discount_type = discount_type
            self.discount_value = round_money(value)
        self.recalculate()

    def set_payment_method(self, method: PaymentMethod | None) -> None:
        self.payment_method = method

    def set_notes(self, notes: str | None) -> None:
        self.notes = (notes or "").strip() or None

    def clear(self) -> None:
        self.items = []
        self.customer_id = None
        self.customer_name = None
        self.customer_type = CustomerType.retail
        self.discount_type = None
        self.discount_value = None
        self.payment_method = None
        self.notes = None
        self.recalculate()

    @staticmethod
    def _check_stock(item: CartItem, quantity: int, available: int | None) -> None:
        if available is not None and quantity > available:
            raise ValidationFailed(
                f"Estoque insuficiente. Disponível: {available}, Solicitado: {quantity}",
                error="insufficient_stock",
                product_id=item.product_id,
                available=available,
                requested=quantity,
            )

    # --- serialização (rascunho durável) ---

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_type": self.customer_type.value,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "discount_value": str(self.discount_value) if self.discount_value is not None else None,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Cart":
        data = data or {}
        return cls(
            items=[CartItem.from_dict(item) for item in data.get("items") or []],
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            customer_type=CustomerType(data.get("customer_type") or CustomerType.retail.value),
            discount_type=DiscountType(data["discount_type"]) if data.get("discount_type") else None,
            discount_value=round_money(data["discount_value"]) if data.get("discount_value") is not None else None,
            payment_method=PaymentMethod(data["payment_method"]) if data.get("payment_method") else None,
            notes=data.get("notes"),
        )
