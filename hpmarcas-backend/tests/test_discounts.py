"""
Discount and coupon tests.

Verifies:
- Item/order discounts are bounded by the base amount
- Coupon discount math (percentage cap, fixed clamp)
- Eligibility reasons returned by the validation endpoint
- Available coupons exclude the ones a customer already used
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app import models
from app.domain.core.enums import DiscountType
from app.services.discounts import (
    coupon_discount,
    coupon_ineligibility_reason,
    discount_value,
    quote_coupon,
    release_coupon,
    reserve_coupon,
)


def _coupon(**overrides):
    values = dict(
        code="X",
        name="X",
        type=models.CouponType.percentage,
        value=Decimal("10"),
        max_discount=None,
        min_order_value=None,
        usage_limit=None,
        used_count=0,
        is_active=True,
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=None,
    )
    values.update(overrides)
    return models.Coupon(**values)


# =============================================================================
# ITEM / ORDER DISCOUNTS
# =============================================================================


class TestDiscountValue:
    @pytest.mark.parametrize(
        "discount_type,value,expected",
        [
            (DiscountType.percent, "10", "20.00"),
            (DiscountType.percent, "150", "200.00"),
            (DiscountType.percent, "-5", "0.00"),
            (DiscountType.amount, "35.50", "35.50"),
            (DiscountType.amount, "500", "200.00"),
            (DiscountType.amount, "-1", "0.00"),
            (None, "10", "0.00"),
        ],
    )
    def test_bounded_by_base(self, discount_type, value, expected):
        assert discount_value("200.00", discount_type, value) == Decimal(expected)

    def test_accepts_raw_strings(self):
        assert discount_value("80", "percent", "25") == Decimal("20.00")


# =============================================================================
# COUPON MATH
# =============================================================================


class TestCouponDiscount:
    def test_percentage_without_cap(self):
        # subtotal 100.00, 10% -> 10.00 off, total 90.00
        coupon = _coupon(value=Decimal("10"))
        assert coupon_discount(coupon, "100.00") == Decimal("10.00")

    def test_percentage_capped_by_max_discount(self):
        coupon = _coupon(value=Decimal("50"), max_discount=Decimal("30"))
        assert coupon_discount(coupon, "100.00") == Decimal("30.00")

    def test_fixed_clamps_to_subtotal(self):
        # subtotal 50.00, fixed 80.00 -> 50.00 off, total 0.00
        coupon = _coupon(type=models.CouponType.fixed, value=Decimal("80"))
        assert coupon_discount(coupon, "50.00") == Decimal("50.00")

    def test_never_exceeds_subtotal(self):
        for value in ("1", "99.99", "100", "250"):
            for subtotal in ("0.01", "10", "99.99", "1000"):
                fixed = coupon_discount(_coupon(type=models.CouponType.fixed, value=Decimal(value)), subtotal)
                percent = coupon_discount(_coupon(value=min(Decimal(value), Decimal("100"))), subtotal)
                assert Decimal("0") <= fixed <= Decimal(subtotal)
                assert Decimal("0") <= percent <= Decimal(subtotal)


# =============================================================================
# ELIGIBILITY
# =============================================================================


class TestEligibility:
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_eligible(self):
        assert coupon_ineligibility_reason(_coupon(), "100", now=self.now) is None

    def test_inactive(self):
        assert coupon_ineligibility_reason(_coupon(is_active=False), "100", now=self.now) == "Cupom nao encontrado ou inativo"

    def test_not_started(self):
        coupon = _coupon(start_date=self.now + timedelta(days=1))
        assert coupon_ineligibility_reason(coupon, "100", now=self.now) == "Cupom ainda nao esta ativo"

    def test_expired(self):
        coupon = _coupon(end_date=self.now - timedelta(seconds=1))
        assert coupon_ineligibility_reason(coupon, "100", now=self.now) == "Cupom expirado"

    def test_naive_dates_are_treated_as_utc(self):
        coupon = _coupon(end_date=datetime(2025, 6, 1, 11, 0))
        assert coupon_ineligibility_reason(coupon, "100", now=self.now) == "Cupom expirado"

    def test_usage_limit_reached(self):
        coupon = _coupon(usage_limit=3, used_count=3)
        assert coupon_ineligibility_reason(coupon, "100", now=self.now) == "Cupom atingiu o limite de uso"

    def test_min_order_value(self):
        coupon = _coupon(min_order_value=Decimal("150"))
        assert coupon_ineligibility_reason(coupon, "149.99", now=self.now) == "Pedido minimo de R$ 150.00 para este cupom"

    def test_already_used_by_customer(self):
        reason = coupon_ineligibility_reason(_coupon(), "100", now=self.now, used_by_customer=True)
        assert reason == "Cupom ja foi utilizado por este cliente"


# =============================================================================
# DATABASE OPERATIONS
# =============================================================================


class TestCouponStore:
    def test_code_lookup_is_case_insensitive(self, db, make_coupon, make_customer):
        make_coupon(code="BEMVINDO10")
        customer, _ = make_customer()
        quote = quote_coupon(db, "  bemvindo10 ", customer.id, "100.00")
        assert quote is not None
        assert quote.discount_amount == Decimal("10.00")

    def test_ineligible_coupon_quotes_nothing(self, db, make_coupon, make_customer):
        make_coupon(code="MINIMO", min_order_value="500")
        customer, _ = make_customer()
        assert quote_coupon(db, "MINIMO", customer.id, "100.00") is None
        assert quote_coupon(db, "NAOEXISTE", customer.id, "100.00") is None
        assert quote_coupon(db, "", customer.id, "100.00") is None

    def test_reserve_respects_usage_limit(self, db, make_coupon):
        coupon = make_coupon(code="LIMITADO", usage_limit=2)
        assert reserve_coupon(db, coupon.id) is True
        assert reserve_coupon(db, coupon.id) is True
        assert reserve_coupon(db, coupon.id) is False
        db.commit()
        db.refresh(coupon)
        assert coupon.used_count == 2

    def test_release_never_goes_negative(self, db, make_coupon):
        coupon = make_coupon(code="SOLTA")
        release_coupon(db, coupon.id)
        db.commit()
        db.refresh(coupon)
        assert coupon.used_count == 0


# =============================================================================
# ENDPOINTS
# =============================================================================


class TestCouponEndpoints:
    def test_validate_returns_discount(self, client, make_coupon, make_customer):
        make_coupon(code="BEMVINDO10", max_discount="15")
        customer, _ = make_customer()
        resp = client.post(
            "/api/coupons/validate",
            json={"code": "bemvindo10", "customer_id": customer.id, "order_total": 200},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["valid"] is True
        assert body["discount_amount"] == 15.0
        assert body["coupon"]["code"] == "BEMVINDO10"

    def test_validate_missing_fields(self, client):
        resp = client.post("/api/coupons/validate", json={"code": "X"})
        assert resp.status_code == 200
        assert resp.json() == {"valid": False, "error": "Dados obrigatorios ausentes"}

    def test_validate_unknown_code(self, client, make_customer):
        customer, _ = make_customer()
        resp = client.post(
            "/api/coupons/validate",
            json={"code": "NADA", "customer_id": customer.id, "order_total": 10},
        )
        assert resp.json() == {"valid": False, "error": "Cupom nao encontrado ou inativo"}

    def test_available_excludes_used_expired_and_exhausted(self, client, db, make_coupon, make_customer):
        customer, _ = make_customer()
        used = make_coupon(code="USADO")
        make_coupon(code="EXPIRADO", end_date=datetime.now(timezone.utc) - timedelta(days=1))
        make_coupon(code="ESGOTADO", usage_limit=1, used_count=1)
        make_coupon(code="INATIVO", is_active=False)
        make_coupon(code="FUTURO", start_date=datetime.now(timezone.utc) + timedelta(days=2))
        make_coupon(code="VALIDO", end_date=datetime.now(timezone.utc) + timedelta(days=2))

        sale = models.Sale(
            id=str(uuid.uuid4()),
            customer_id=customer.id,
            subtotal=Decimal("10"),
            total=Decimal("10"),
            payment_method=models.PaymentMethod.pix,
            order_source=models.OrderSource.ecommerce,
        )
        db.add(sale)
        db.add(
            models.CouponUsage(
                id=str(uuid.uuid4()),
                coupon_id=used.id,
                customer_id=customer.id,
                order_id=sale.id,
                discount_amount=Decimal("1"),
            )
        )
        db.commit()

        resp = client.get("/api/coupons/available", params={"customer_id": customer.id})
        assert resp.status_code == 200
        codes = [c["code"] for c in resp.json()["coupons"]]
        assert codes == ["VALIDO"]
