"""
Conciliação de notificações de pagamento do Mercado Pago.

O corpo da notificação só informa o id do pagamento; o status é sempre relido no gateway.
Notificações podem chegar repetidas ou fora de ordem: a troca de status é um UPDATE
condicional ao status anterior. A baixa de estoque acontece uma única vez por pedido, na
primeira aprovação: o mesmo UPDATE marca `stock_applied_at`, e uma falha na baixa é só
registrada em log (não é refeita em reenvios).
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.db import settings
from app.domain.payment.status_map import UnknownGatewayStatus, is_transition_allowed, map_gateway_status
from app.errors import NotFound, PaymentFetchFailed, UnknownPaymentStatus, ValidationFailed
from app.services.gateway import GatewayError, GatewayPayment, PaymentGateway
from app.services.stock import decrement_for_items

logger = logging.getLogger(__name__)

_COLLECTOR_PREFIX = re.compile(r"^\d+-")


@dataclass
class ReconciliationResult:
    status: str
    order_id: str | None = None
    payment_status: models.PaymentStatus | None = None
    order_status: models.OrderStatus | None = None
    applied: bool = False
    stock_decremented: bool = False
    notify_payment_confirmed: bool = False

    def to_response(self) -> dict:
        body: dict = {"status": self.status}
        if self.order_id:
            body["order_id"] = self.order_id
        if self.payment_status:
            body["payment_status"] = self.payment_status.value
        if self.status == "success":
            body["applied"] = self.applied
        return body


def extract_payment_id(payload: dict, query_params: dict | None = None) -> str | None:
    query_params = query_params or {}
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    value = data.get("id") or query_params.get("data.id") or query_params.get("id")
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def event_type(payload: dict, query_params: dict | None = None) -> str:
    query_params = query_params or {}
    return str(payload.get("type") or payload.get("topic") or query_params.get("type") or query_params.get("topic") or "")


def find_sale_for_payment(db: Session, payment: GatewayPayment) -> models.Sale | None:
    sale = (
        db.query(models.Sale)
        .filter(
            models.Sale.payment_external_id == payment.id,
            models.Sale.order_source == models.OrderSource.ecommerce,
        )
        .first()
    )
    if sale:
        return sale
    reference = (payment.external_reference or "").strip()
    candidates = [reference, _COLLECTOR_PREFIX.sub("", reference, count=1)]
    for order_id in dict.fromkeys(c for c in candidates if c):
        sale = (
            db.query(models.Sale)
            .filter(
                models.Sale.id == order_id,
                models.Sale.order_source == models.OrderSource.ecommerce,
            )
            .first()
        )
        if sale:
            return sale
    return None


def apply_payment_update(
    db: Session,
    sale: models.Sale,
    payment: GatewayPayment,
    payment_status: models.PaymentStatus,
    order_status: models.OrderStatus,
) -> ReconciliationResult:
    sale_id = sale.id
    previous_status = sale.status
    fulfil = payment_status == models.PaymentStatus.approved and sale.stock_applied_at is None
    if not is_transition_allowed(previous_status, order_status):
        logger.warning(
            "Stale payment notification ignored order_id=%s payment_id=%s current=%s incoming=%s",
            sale_id,
            payment.id,
            previous_status.value,
            order_status.value,
        )
        return ReconciliationResult(
            status="success",
            order_id=sale_id,
            payment_status=sale.payment_status,
            order_status=previous_status,
            applied=False,
        )

    values = {
        "payment_status": payment_status,
        "status": order_status,
        "payment_external_id": payment.id,
        "payment_method_detail": json.dumps(payment.snapshot()),
        "updated_at": func.now(),
    }
    stmt = update(models.Sale).where(models.Sale.id == sale_id, models.Sale.status == previous_status)
    if fulfil:
        values["stock_applied_at"] = func.now()
        stmt = stmt.where(models.Sale.stock_applied_at.is_(None))
    result = db.execute(stmt.values(**values).execution_options(synchronize_session=False))
    if result.rowcount != 1:
        db.rollback()
        logger.warning("Concurrent payment update lost the race order_id=%s payment_id=%s", sale_id, payment.id)
        current = db.query(models.Sale).filter(models.Sale.id == sale_id).first()
        return ReconciliationResult(
            status="success",
            order_id=sale_id,
            payment_status=current.payment_status if current else None,
            order_status=current.status if current else None,
            applied=False,
        )
    db.commit()

    decremented = False
    if fulfil:
        items = db.query(models.SaleItem).filter(models.SaleItem.sale_id == sale_id).all()
        try:
            decrement_for_items(db, [(item.product_id, item.quantity) for item in items])
            db.commit()
            decremented = True
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to decrement stock for order_id=%s", sale_id)

    logger.info(
        "Payment reconciled order_id=%s payment_id=%s %s -> %s payment_status=%s",
        sale_id,
        payment.id,
        previous_status.value,
        order_status.value,
        payment_status.value,
    )
    return ReconciliationResult(
        status="success",
        order_id=sale_id,
        payment_status=payment_status,
        order_status=order_status,
        applied=True,
        stock_decremented=decremented,
        notify_payment_confirmed=fulfil,
    )


def reconcile_payment_notification(
    db: Session,
    gateway: PaymentGateway,
    payload: dict,
    query_params: dict | None = None,
) -> ReconciliationResult:
    if event_type(payload, query_params) != "payment":
        return ReconciliationResult(status="ignored")

    payment_id = extract_payment_id(payload, query_params)
    if not payment_id:
        raise ValidationFailed("Payment ID ausente", error="missing_payment_id")

    try:
        payment = gateway.get_payment(payment_id)
    except GatewayError as exc:
        if payment_id in settings.MERCADO_PAGO_TEST_PAYMENT_IDS_LIST:
            logger.info("Test payment notification acknowledged payment_id=%s", payment_id)
            return ReconciliationResult(status="test_success")
        raise PaymentFetchFailed("Erro ao buscar pagamento", payment_id=payment_id) from exc

    if not payment.external_reference:
        raise ValidationFailed("Referencia externa ausente", error="missing_external_reference")

    sale = find_sale_for_payment(db, payment)
    if not sale:
        logger.warning(
            "Order not found for payment_id=%s external_reference=%s", payment.id, payment.external_reference
        )
        raise NotFound("Pedido nao encontrado", error="order_not_found")

    try:
        payment_status, order_status = map_gateway_status(payment.status)
    except UnknownGatewayStatus as exc:
        logger.error("Unknown payment status=%s payment_id=%s order_id=%s", payment.status, payment.id, sale.id)
        raise UnknownPaymentStatus(f"Status de pagamento desconhecido: {payment.status}", gateway_status=payment.status) from exc

    return apply_payment_update(db, sale, payment, payment_status, order_status)
