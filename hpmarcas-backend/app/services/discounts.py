"""
Descontos de item, de pedido e cupons.
Cupom inválido nunca derruba uma venda: o checkout só deixa de aplicar o desconto.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app import models
from app.domain.core.enums import CouponType, DiscountType
from app.services.pricing import Number, ZERO, clamp_money, percentage_of, round_money, to_decimal

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_coupon_code(code: str | None) -> str:
    return (code or "").strip().upper()


# --- Descontos de item e de pedido ---


def discount_value(base: Number, discount_type: DiscountType | str | None, value: Number | None) -> Decimal:
    """Desconto em R$ sobre ``base``; percentual limitado a 100% e valor fixo limitado à base."""
    base_value = round_money(base)
    if not discount_type or value is None or base_value <= 0:
        return ZERO
    kind = DiscountType(discount_type) if not isinstance(discount_type, DiscountType) else discount_type
    if kind == DiscountType.percent:
        percent = clamp_money(value, 0, 100)
        return clamp_money(percentage_of(base_value, percent), 0, base_value)
    return clamp_money(value, 0, base_value)


def coupon_discount(coupon: models.Coupon, subtotal: Number) -> Decimal:
    base = round_money(subtotal)
    if base <= 0:
        return ZERO
    if coupon.type == CouponType.percentage:
        discount = percentage_of(base, coupon.value)
        if coupon.max_discount is not None and discount > to_decimal(coupon.max_discount):
            discount = round_money(coupon.max_discount)
    elif coupon.type == CouponType.fixed:
        discount = round_money(coupon.value)
    else:
        return ZERO
    return clamp_money(discount, 0, base)


# --- Elegibilidade ---


def coupon_ineligibility_reason(
    coupon: models.Coupon,
    subtotal: Number,
    *,
    now: datetime | None = None,
    used_by_customer: bool = False,
) -> str | None:
    now = _as_utc(now) or datetime.now(timezone.utc)
    if not coupon.is_active:
        return "Cupom nao encontrado ou inativo"
    start = _as_utc(coupon.start_date)
    if start and now < start:
        return "Cupom ainda nao esta ativo"
    end = _as_utc(coupon.end_date)
    if end and now > end:
        return "Cupom expirado"
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return "Cupom atingiu o limite de uso"
    if coupon.min_order_value is not None and round_money(subtotal) < round_money(coupon.min_order_value):
        return f"Pedido minimo de R$ {round_money(coupon.min_order_value):.2f} para este cupom"
    if used_by_customer:
        return "Cupom ja foi utilizado por este cliente"
    return None


def find_coupon(db: Session, code: str | None) -> models.Coupon | None:
    normalized = normalize_coupon_code(code)
    if not normalized:
        return None
    return (
        db.query(models.Coupon)
        .filter(func.upper(models.Coupon.code) == normalized)
        .first()
    )


def customer_used_coupon(db: Session, coupon_id: str, customer_id: str | None) -> bool:
    if not customer_id:
        return False
    return (
        db.query(models.CouponUsage.id)
        .filter(
            models.CouponUsage.coupon_id == coupon_id,
            models.CouponUsage.customer_id == customer_id,
        )
        .first()
        is not None
    )


@dataclass
class CouponQuote:
    coupon: models.Coupon
    discount_amount: Decimal


def quote_coupon(db: Session, code: str | None, customer_id: str | None, subtotal: Number) -> CouponQuote | None:
    """Cupom aplicável ao pedido ou None. Nunca levanta erro de elegibilidade."""
    if not normalize_coupon_code(code):
        return None
    coupon = find_coupon(db, code)
    if not coupon:
        logger.info("Coupon ignored: code=%s not found", normalize_coupon_code(code))
        return None
    reason = coupon_ineligibility_reason(
        coupon,
        subtotal,
        used_by_customer=customer_used_coupon(db, coupon.id, customer_id),
    )
    if reason:
        logger.info("Coupon ignored: code=%s reason=%s", coupon.code, reason)
        return None
    discount = coupon_discount(coupon, subtotal)
    if discount <= 0:
        return None
    return CouponQuote(coupon=coupon, discount_amount=discount)


# --- Contador de uso (atômico no banco) ---


def reserve_coupon(db: Session, coupon_id: str) -> bool:
    """Incrementa used_count só se ainda houver saldo. Retorna False se o limite já foi atingido."""
    result = db.execute(
        update(models.Coupon)
        .where(models.Coupon.id == coupon_id)
        .where(models.Coupon.is_active.is_(True))
        .where(or_(models.Coupon.usage_limit.is_(None), models.Coupon.used_count < models.Coupon.usage_limit))
        .values(used_count=models.Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_coupon(db: Session, coupon_id: str) -> None:
    db.execute(
        update(models.Coupon)
        .where(models.Coupon.id == coupon_id, models.Coupon.used_count > 0)
        .values(used_count=models.Coupon.used_count - 1)
        .execution_options(synchronize_session=False)
    )


# --- API pública (endpoint de cupons) ---


def coupon_summary(coupon: models.Coupon) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "name": coupon.name,
        "description": coupon.description,
        "type": coupon.type.value,
        "value": float(coupon.value),
        "min_order_value": float(coupon.min_order_value) if coupon.min_order_value is not None else None,
        "max_discount": float(coupon.max_discount) if coupon.max_discount is not None else None,
        "end_date": _as_utc(coupon.end_date).isoformat() if coupon.end_date else None,
    }


def validate_coupon(db: Session, code: str | None, customer_id: str | None, order_total: Number | None) -> dict:
    if not normalize_coupon_code(code) or not customer_id or order_total is None:
        return {"valid": False, "error": "Dados obrigatorios ausentes"}
    coupon = find_coupon(db, code)
    if not coupon or not coupon.is_active:
        return {"valid": False, "error": "Cupom nao encontrado ou inativo"}
    reason = coupon_ineligibility_reason(
        coupon,
        order_total,
        used_by_customer=customer_used_coupon(db, coupon.id, customer_id),
    )
    if reason:
        return {"valid": False, "error": reason}
    return {
        "valid": True,
        "coupon": coupon_summary(coupon),
        "discount_amount": float(coupon_discount(coupon, order_total)),
    }


def list_available_coupons(db: Session, customer_id: str) -> list[models.Coupon]:
    now = datetime.now(timezone.utc)
    used_ids = select(models.CouponUsage.coupon_id).where(models.CouponUsage.customer_id == customer_id)
    coupons = (
        db.query(models.Coupon)
        .filter(models.Coupon.is_active.is_(True))
        .filter(or_(models.Coupon.usage_limit.is_(None), models.Coupon.used_count < models.Coupon.usage_limit))
        .filter(models.Coupon.id.not_in(used_ids))
        .order_by(models.Coupon.created_at.desc())
        .all()
    )
    # janela de validade comparada em Python (SQLite devolve datetime sem fuso)
    available: list[models.Coupon] = []
    for coupon in coupons:
        start = _as_utc(coupon.start_date)
        end = _as_utc(coupon.end_date)
        if start and start > now:
            continue
        if end and end < now:
            continue
        available.append(coupon)
    return available
