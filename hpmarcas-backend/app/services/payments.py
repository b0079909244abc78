"""
Criação do pagamento PIX no Mercado Pago para um pedido online já criado.

O valor cobrado é sempre o total gravado no pedido. O id do pagamento retornado vai para
`payment_external_id`, que é a primeira chave usada pelo webhook para achar o pedido.
O status do pedido continua sendo decidido só pelo conciliador.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app import models, schemas
from app.db import settings
from app.domain.payment.status_map import UnknownGatewayStatus, map_gateway_status
from app.errors import NotFound, PaymentSetupFailed, ValidationFailed
from app.services.gateway import GatewayError, GatewayPayment, PaymentGateway, PaymentRequest
from app.services.pricing import round_money

logger = logging.getLogger(__name__)

ONLINE_PAYMENT_METHODS = frozenset({"pix"})
_OPEN_STATUSES = (models.OrderStatus.pending, models.OrderStatus.cancelled)


@dataclass
class ProcessedPayment:
    order_id: str
    payment: GatewayPayment


def find_order_for_reference(db: Session, reference: str) -> models.Sale | None:
    """Pedido pela preferência gravada no checkout ou, na falta, pelo próprio id."""
    query = db.query(models.Sale).filter(models.Sale.order_source == models.OrderSource.ecommerce)
    sale = query.filter(models.Sale.payment_external_id == reference).first()
    if sale:
        return sale
    return query.filter(models.Sale.id == reference).first()


def split_name(name: str | None) -> tuple[str, str]:
    parts = (name or "").split()
    if not parts:
        return "Cliente", "HP Marcas"
    return parts[0], " ".join(parts[1:]) or "HP Marcas"


def _payer_for(sale: models.Sale, customer: models.Customer | None, payer: schemas.PayerIn | None) -> dict:
    first_name, last_name = split_name(customer.name if customer else sale.customer_name)
    payer = payer or schemas.PayerIn()
    return {
        "payer_email": payer.email or (customer.email if customer else None) or settings.payer_fallback_email,
        "payer_first_name": payer.first_name or first_name,
        "payer_last_name": payer.last_name or last_name,
        "payer_document": payer.identification_number or (customer.document if customer else None),
    }


def process_payment(
    db: Session,
    gateway: PaymentGateway,
    payload: schemas.PaymentProcessIn,
    *,
    idempotency_key: str | None = None,
) -> ProcessedPayment:
    reference = (payload.preference_id or "").strip()
    if not reference:
        raise ValidationFailed("Dados obrigatorios ausentes", error="missing_fields")

    method = (payload.payment_method_id or "pix").strip().lower()
    if method not in ONLINE_PAYMENT_METHODS:
        raise ValidationFailed("Forma de pagamento invalida", error="invalid_payment_method")

    sale = find_order_for_reference(db, reference)
    if not sale:
        raise NotFound("Pedido nao encontrado", error="order_not_found")
    if sale.payment_status == models.PaymentStatus.approved or sale.status not in _OPEN_STATUSES:
        raise ValidationFailed("Pedido ja pago", error="order_already_paid", status_code=409, order_id=sale.id)

    total = round_money(sale.total)
    if payload.amount is not None and round_money(payload.amount) != total:
        raise ValidationFailed(
            "Valor diferente do total do pedido",
            error="amount_mismatch",
            order_id=sale.id,
            total=float(total),
        )

    customer = None
    if sale.customer_id:
        customer = db.query(models.Customer).filter(models.Customer.id == sale.customer_id).first()

    sale_id = sale.id
    try:
        payment = gateway.create_payment(
            PaymentRequest(
                order_id=sale_id,
                amount=total,
                payment_method_id=method,
                idempotency_key=idempotency_key,
                **_payer_for(sale, customer, payload.payer),
            )
        )
    except GatewayError as exc:
        logger.error("Payment creation failed for order_id=%s: %s", sale_id, exc)
        raise PaymentSetupFailed("Erro ao criar pagamento", order_id=sale_id) from exc

    values = {
        "payment_external_id": payment.id,
        "payment_method_detail": json.dumps(payment.snapshot()),
        "updated_at": func.now(),
    }
    try:
        payment_status, order_status = map_gateway_status(payment.status)
    except UnknownGatewayStatus:
        logger.warning("Unknown status=%s on new payment_id=%s order_id=%s", payment.status, payment.id, sale_id)
    else:
        if order_status == models.OrderStatus.pending:
            values["payment_status"] = payment_status

    # só grava enquanto o conciliador não tiver fechado o pedido
    result = db.execute(
        update(models.Sale)
        .where(
            models.Sale.id == sale_id,
            models.Sale.status.in_(_OPEN_STATUSES),
            models.Sale.payment_status != models.PaymentStatus.approved,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        logger.warning("Order order_id=%s settled before payment_id=%s was recorded", sale_id, payment.id)

    logger.info(
        "Payment created order_id=%s payment_id=%s status=%s amount=%s",
        sale_id,
        payment.id,
        payment.status,
        total,
    )
    return ProcessedPayment(order_id=sale_id, payment=payment)
