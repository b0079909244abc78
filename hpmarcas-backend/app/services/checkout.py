"""
Serviço de checkout online: validação, preço, cupom, persistência e preferência de pagamento.
O router de pedidos deve apenas orquestrar (chamar este serviço, disparar notificações).
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app import models, schemas
from app.errors import InsufficientStock, NotFound, PaymentSetupFailed, PersistenceFailed, ValidationFailed
from app.services.cart import tier_price
from app.services.discounts import CouponQuote, quote_coupon, release_coupon, reserve_coupon
from app.services.gateway import GatewayError, PaymentGateway, PaymentPreference, PreferenceRequest
from app.services.pricing import ZERO, clamp_money, round_money, safe_add, safe_multiply, safe_subtract
from app.services.stock import InventoryLevel, StockRequest, find_shortfalls, merge_requests

logger = logging.getLogger(__name__)

DEFAULT_SHIPPING_METHOD = "standard"


def _gen_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PricedLine:
    product: models.Product
    volume: models.ProductVolume | None
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class CheckoutResult:
    """Resultado de create_order para o router montar resposta e notificações."""
    order_id: str
    status: models.OrderStatus
    payment_status: models.PaymentStatus
    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    total: Decimal
    payment_external_id: str
    preference: PaymentPreference


def _load_customer_and_address(
    db: Session, customer_id: str, address_id: str
) -> tuple[models.Customer, models.CustomerAddress]:
    customer = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
    if not customer:
        raise NotFound("Cliente nao encontrado", error="customer_not_found")
    address = (
        db.query(models.CustomerAddress)
        .filter(
            models.CustomerAddress.id == address_id,
            models.CustomerAddress.customer_id == customer.id,
        )
        .first()
    )
    if not address:
        raise NotFound("Endereco de entrega nao encontrado", error="address_not_found")
    return customer, address


def _load_active_products(db: Session, items: list[schemas.OrderItemIn]) -> dict[str, models.Product]:
    ids = list({item.product_id for item in items})
    products = (
        db.query(models.Product)
        .options(selectinload(models.Product.volumes))
        .filter(
            models.Product.id.in_(ids),
            models.Product.status == models.ProductStatus.active,
        )
        .all()
    )
    cache = {p.id: p for p in products}
    for item in items:
        if item.product_id not in cache:
            raise ValidationFailed(
                f"Produto {item.product_id} nao encontrado ou inativo",
                error="product_unavailable",
                product_id=item.product_id,
            )
    return cache


def _check_stock(items: list[schemas.OrderItemIn], products: dict[str, models.Product]) -> None:
    requests = merge_requests(StockRequest(item.product_id, item.quantity) for item in items)
    inventory = {
        pid: InventoryLevel(product_name=p.name, available=int(p.stock or 0)) for pid, p in products.items()
    }
    shortfalls = find_shortfalls(requests, inventory)
    if shortfalls:
        raise InsufficientStock(shortfalls)


def resolve_volume(product: models.Product, ref: schemas.VolumeRef | None) -> models.ProductVolume | None:
    """Volume é sempre resolvido pelo cadastro; ajuste de preço enviado pelo cliente é ignorado."""
    if ref is None or not (ref.id or ref.size):
        return None
    for volume in product.volumes:
        if ref.id and volume.id == ref.id:
            return volume
        if not ref.id and (volume.size or "").strip().lower() == (ref.size or "").strip().lower() and (
            volume.unit or ""
        ).strip().lower() == (ref.unit or "").strip().lower():
            return volume
    raise ValidationFailed(
        f"Volume invalido para o produto {product.id}",
        error="invalid_volume",
        product_id=product.id,
    )


def price_lines(
    items: list[schemas.OrderItemIn],
    products: dict[str, models.Product],
    customer_type: models.CustomerType,
) -> tuple[Decimal, list[PricedLine]]:
    lines: list[PricedLine] = []
    for item in items:
        product = products[item.product_id]
        volume = resolve_volume(product, item.volume)
        unit_price = tier_price(product.retail_price, product.wholesale_price, customer_type)
        if volume is not None:
            unit_price = safe_add(unit_price, volume.price_adjustment)
        lines.append(
            PricedLine(
                product=product,
                volume=volume,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=safe_multiply(unit_price, item.quantity),
            )
        )
    subtotal = safe_add(*[line.total_price for line in lines]) if lines else ZERO
    return subtotal, lines


def _persist_items(db: Session, sale_id: str, lines: list[PricedLine]) -> None:
    for line in lines:
        db.add(
            models.SaleItem(
                id=_gen_id(),
                sale_id=sale_id,
                product_id=line.product.id,
                volume_id=line.volume.id if line.volume else None,
                product_name=line.product.name,
                product_sku=line.product.sku,
                volume_label=line.volume.label if line.volume else None,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_amount=ZERO,
                total_price=line.total_price,
            )
        )
    db.flush()


def _discard_sale(db: Session, sale_id: str, coupon_id: str | None) -> None:
    try:
        db.execute(delete(models.SaleItem).where(models.SaleItem.sale_id == sale_id))
        db.execute(delete(models.Sale).where(models.Sale.id == sale_id))
        if coupon_id:
            release_coupon(db, coupon_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to roll back order_id=%s after item persistence failure", sale_id)


def _reserve_quote(db: Session, quote: CouponQuote | None) -> CouponQuote | None:
    if quote is None:
        return None
    if not reserve_coupon(db, quote.coupon.id):
        db.rollback()
        logger.warning("Coupon ignored: code=%s usage limit reached during checkout", quote.coupon.code)
        return None
    db.commit()
    return quote


def _record_coupon_usage(db: Session, quote: CouponQuote, customer_id: str, sale_id: str) -> bool:
    """Grava o uso do cupom. False quando o cliente já usou este cupom em outro pedido."""
    try:
        db.add(
            models.CouponUsage(
                id=_gen_id(),
                coupon_id=quote.coupon.id,
                customer_id=customer_id,
                order_id=sale_id,
                discount_amount=quote.discount_amount,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record coupon usage coupon_id=%s order_id=%s", quote.coupon.id, sale_id)
    return True


def _drop_coupon(db: Session, sale_id: str, coupon_id: str, total: Decimal) -> None:
    release_coupon(db, coupon_id)
    db.execute(
        update(models.Sale)
        .where(models.Sale.id == sale_id)
        .values(coupon_id=None, discount_percent=ZERO, discount_amount=ZERO, total=total)
        .execution_options(synchronize_session=False)
    )
    db.commit()


# --- API pública ---


def create_order(db: Session, gateway: PaymentGateway, payload: schemas.CreateOrderIn) -> CheckoutResult:
    """Cria o pedido online (PIX). Retorna dados para resposta e notificações."""
    if not payload.customer_id or not payload.shipping_address_id or not payload.items:
        raise ValidationFailed("Dados obrigatorios ausentes", error="missing_fields")

    customer, address = _load_customer_and_address(db, payload.customer_id, payload.shipping_address_id)
    products = _load_active_products(db, payload.items)
    _check_stock(payload.items, products)

    subtotal, lines = price_lines(payload.items, products, customer.type)
    shipping_cost = clamp_money(payload.shipping_cost)

    quote = _reserve_quote(db, quote_coupon(db, payload.coupon_code, customer.id, subtotal))
    discount_amount = quote.discount_amount if quote else ZERO
    discount_percent = ZERO
    if quote and quote.coupon.type == models.CouponType.percentage:
        discount_percent = round_money(quote.coupon.value)
    total = clamp_money(safe_add(safe_subtract(subtotal, discount_amount), shipping_cost))

    sale = models.Sale(
        id=_gen_id(),
        customer_id=customer.id,
        customer_name=customer.name,
        customer_type=customer.type,
        shipping_address_id=address.id,
        shipping_method=payload.shipping_method or DEFAULT_SHIPPING_METHOD,
        shipping_cost=shipping_cost,
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        total=total,
        coupon_id=quote.coupon.id if quote else None,
        payment_method=models.PaymentMethod.pix,
        payment_status=models.PaymentStatus.pending,
        status=models.OrderStatus.pending,
        order_source=models.OrderSource.ecommerce,
        notes=payload.notes,
    )
    sale_id = sale.id
    try:
        db.add(sale)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create order")
        if quote:
            release_coupon(db, quote.coupon.id)
            db.commit()
        raise PersistenceFailed("Erro ao criar pedido") from exc

    try:
        _persist_items(db, sale_id, lines)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create items for order_id=%s", sale_id)
        _discard_sale(db, sale_id, quote.coupon.id if quote else None)
        raise PersistenceFailed("Erro ao criar itens do pedido") from exc

    if quote and not _record_coupon_usage(db, quote, customer.id, sale_id):
        # pedido concorrente do mesmo cliente já resgatou o cupom
        logger.warning("Coupon ignored: code=%s already redeemed by customer_id=%s", quote.coupon.code, customer.id)
        total = clamp_money(safe_add(subtotal, shipping_cost))
        _drop_coupon(db, sale_id, quote.coupon.id, total)
        quote = None
        discount_amount = ZERO

    try:
        preference = gateway.create_preference(
            PreferenceRequest(
                order_id=sale_id,
                total=total,
                item_count=len(lines),
                payer_name=customer.name,
                payer_email=customer.email,
            )
        )
    except GatewayError as exc:
        logger.error("Payment preference failed for order_id=%s: %s", sale_id, exc)
        raise PaymentSetupFailed(
            "Pedido criado, mas houve erro ao criar a preferencia de pagamento",
            order_id=sale_id,
        ) from exc

    sale = db.query(models.Sale).filter(models.Sale.id == sale_id).first()
    sale.payment_method_detail = json.dumps(
        {"preference_id": preference.id, "init_point": preference.init_point}
    )
    sale.payment_external_id = preference.id
    db.commit()

    logger.info(
        "Order created order_id=%s total=%s coupon=%s preference_id=%s",
        sale_id,
        total,
        quote.coupon.code if quote else None,
        preference.id,
    )
    return CheckoutResult(
        order_id=sale_id,
        status=models.OrderStatus.pending,
        payment_status=models.PaymentStatus.pending,
        subtotal=subtotal,
        discount_amount=discount_amount,
        shipping_cost=shipping_cost,
        total=total,
        payment_external_id=preference.id,
        preference=preference,
    )
