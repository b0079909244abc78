"""
Cart aggregate tests (no database).

Verifies:
- Tier pricing and volume adjustments
- Item discount vs manual price are mutually exclusive
- Totals are recomputed after every mutation and never go negative
- Draft serialization keeps the cart intact
"""

from decimal import Decimal

import pytest

from app.domain.core.enums import CustomerType, DiscountType, PaymentMethod
from app.errors import NotFound, ValidationFailed
from app.services.cart import Cart, CartItem, item_key


def _item(product_id="p1", quantity=1, retail="100.00", wholesale="80.00", **extra):
    return CartItem(
        product_id=product_id,
        product_name=f"Produto {product_id}",
        quantity=quantity,
        retail_price=Decimal(retail),
        wholesale_price=Decimal(wholesale),
        **extra,
    )


class TestPricing:
    def test_retail_vs_wholesale(self):
        cart = Cart()
        cart.add_item(_item(quantity=2))
        assert cart.total == Decimal("200.00")
        cart.set_customer_type(CustomerType.wholesale)
        assert cart.total == Decimal("160.00")

    def test_volume_adjustment_applies_to_unit_price(self):
        cart = Cart()
        cart.add_item(_item(volume_id="v50", volume_label="50ml", price_adjustment=Decimal("-25.00")))
        assert cart.items[0].unit_price == Decimal("75.00")
        assert cart.items[0].key == item_key("p1", "v50")

    def test_same_key_merges_quantities(self):
        cart = Cart()
        cart.add_item(_item(quantity=1))
        cart.add_item(_item(quantity=2))
        cart.add_item(_item(quantity=1, volume_id="v1"))
        assert len(cart.items) == 2
        assert cart.item_count == 4


class TestAdjustments:
    def test_item_discount_and_manual_price_are_exclusive(self):
        cart = Cart()
        cart.add_item(_item(quantity=2))
        key = cart.items[0].key

        cart.apply_item_discount(key, DiscountType.percent, 10)
        assert cart.items[0].discount_amount == Decimal("20.00")
        assert cart.total == Decimal("180.00")

        cart.apply_manual_price(key, "90.00")
        item = cart.items[0]
        assert item.discount_type is None
        assert item.discount_amount == Decimal("0.00")
        assert cart.total == Decimal("180.00")

        cart.apply_item_discount(key, DiscountType.amount, "15")
        assert cart.items[0].manual_price is None
        assert cart.total == Decimal("185.00")

        cart.clear_item_adjustments(key)
        assert cart.total == Decimal("200.00")

    def test_negative_manual_price_rejected(self):
        cart = Cart()
        cart.add_item(_item())
        with pytest.raises(ValidationFailed):
            cart.apply_manual_price(cart.items[0].key, "-1")

    def test_order_discount_never_makes_total_negative(self):
        cart = Cart()
        cart.add_item(_item(retail="30.00"))
        cart.apply_order_discount(DiscountType.amount, "500")
        assert cart.discount_amount == Decimal("30.00")
        assert cart.total == Decimal("0.00")

        cart.apply_order_discount(DiscountType.percent, "12.5")
        assert cart.discount_percent == Decimal("12.50")
        assert cart.total == Decimal("26.25")

        cart.apply_order_discount(None, None)
        assert cart.total == Decimal("30.00")


class TestQuantities:
    def test_update_to_zero_removes_item(self):
        cart = Cart()
        cart.add_item(_item(quantity=3))
        cart.update_quantity(cart.items[0].key, 0)
        assert cart.is_empty
        assert cart.total == Decimal("0.00")

    def test_stock_limit_enforced(self):
        cart = Cart()
        cart.add_item(_item(quantity=2, available_stock=3))
        with pytest.raises(ValidationFailed) as exc:
            cart.add_item(_item(quantity=2, available_stock=3))
        assert exc.value.error == "insufficient_stock"
        assert exc.value.message == "Estoque insuficiente. Disponível: 3, Solicitado: 4"

    def test_unknown_item(self):
        with pytest.raises(NotFound):
            Cart().remove_item("missing:")

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationFailed):
            Cart().add_item(_item(quantity=0))


class TestSerialization:
    def test_draft_round_trip(self):
        cart = Cart()
        cart.add_item(_item(quantity=2, volume_id="v1", volume_label="100ml"))
        cart.apply_item_discount(cart.items[0].key, DiscountType.percent, 5)
        cart.apply_order_discount(DiscountType.amount, "10")
        cart.set_customer("c1", "Ana", CustomerType.wholesale)
        cart.set_payment_method(PaymentMethod.cash)
        cart.set_notes("  embrulhar para presente ")

        restored = Cart.from_dict(cart.to_dict())
        assert restored.total == cart.total
        assert restored.customer_type == CustomerType.wholesale
        assert restored.payment_method == PaymentMethod.cash
        assert restored.notes == "embrulhar para presente"
        assert restored.items[0].discount_value == Decimal("5.00")

    def test_clear_resets_everything(self):
        cart = Cart()
        cart.add_item(_item())
        cart.set_payment_method(PaymentMethod.pix)
        cart.clear()
        assert cart.is_empty
        assert cart.payment_method is None
        assert cart.total == Decimal("0.00")
