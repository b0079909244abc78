"""
Adaptador do Mercado Pago (REST via httpx).
Checkout e conciliador recebem o gateway por injeção (Depends(get_payment_gateway)); nada aqui é global.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

import httpx

from app.db import settings

logger = logging.getLogger(__name__)

EXCLUDED_PAYMENT_METHODS = ("visa", "master", "amex", "elo")
EXCLUDED_PAYMENT_TYPES = ("credit_card", "debit_card", "ticket")


class GatewayError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PreferenceRequest:
    order_id: str
    total: Decimal
    item_count: int
    payer_name: str
    payer_email: str | None = None


@dataclass
class PaymentRequest:
    order_id: str
    amount: Decimal
    payment_method_id: str
    payer_email: str
    payer_first_name: str
    payer_last_name: str
    payer_document: str | None = None
    idempotency_key: str | None = None


@dataclass
class PaymentPreference:
    id: str
    init_point: str | None = None
    sandbox_init_point: str | None = None


@dataclass
class GatewayPayment:
    id: str
    status: str | None
    status_detail: str | None = None
    external_reference: str | None = None
    payment_method_id: str | None = None
    payment_type_id: str | None = None
    date_approved: str | None = None
    transaction_amount: float | None = None
    fee_details: list = field(default_factory=list)
    point_of_interaction: dict | None = None

    def snapshot(self) -> dict:
        return {
            "payment_id": self.id,
            "payment_method": self.payment_method_id,
            "payment_type": self.payment_type_id,
            "status": self.status,
            "status_detail": self.status_detail,
            "date_approved": self.date_approved,
            "transaction_amount": self.transaction_amount,
            "fee_details": self.fee_details,
        }


class PaymentGateway(Protocol):
    def create_preference(self, request: PreferenceRequest) -> PaymentPreference: ...

    def create_payment(self, request: PaymentRequest) -> GatewayPayment: ...

    def get_payment(self, payment_id: str) -> GatewayPayment: ...


def build_preference_body(request: PreferenceRequest) -> dict:
    base_url = settings.public_base_url
    return {
        "items": [
            {
                "id": request.order_id,
                "title": f"Pedido #{request.order_id[-8:]}",
                "description": f"{request.item_count} item(ns)",
                "quantity": 1,
                "currency_id": "BRL",
                "unit_price": float(request.total),
            }
        ],
        "payer": {
            "name": request.payer_name,
            "email": request.payer_email or settings.payer_fallback_email,
        },
        "payment_methods": {
            "excluded_payment_methods": [{"id": m} for m in EXCLUDED_PAYMENT_METHODS],
            "excluded_payment_types": [{"id": t} for t in EXCLUDED_PAYMENT_TYPES],
            "installments": 1,
        },
        "back_urls": {
            "success": f"{base_url}/checkout/sucesso/{request.order_id}",
            "failure": f"{base_url}/checkout?error=payment_failed",
            "pending": f"{base_url}/checkout/sucesso/{request.order_id}?status=pending",
        },
        "notification_url": f"{base_url}/api/webhooks/mercadopago",
        "external_reference": request.order_id,
        "statement_descriptor": settings.mercado_pago_statement_descriptor,
    }


def build_payment_body(request: PaymentRequest) -> dict:
    payer: dict = {
        "email": request.payer_email,
        "first_name": request.payer_first_name,
        "last_name": request.payer_last_name,
    }
    document = "".join(ch for ch in (request.payer_document or "") if ch.isdigit())
    if document:
        payer["identification"] = {"type": "CNPJ" if len(document) == 14 else "CPF", "number": document}
    return {
        "transaction_amount": float(request.amount),
        "payment_method_id": request.payment_method_id,
        "description": f"Pedido HP Marcas #{request.order_id[-8:]}",
        "payer": payer,
        "external_reference": request.order_id,
        "notification_url": f"{settings.public_base_url}/api/webhooks/mercadopago",
    }


def _payment_from_response(data: dict) -> GatewayPayment:
    amount = data.get("transaction_amount")
    return GatewayPayment(
        id=str(data.get("id")),
        status=data.get("status"),
        status_detail=data.get("status_detail"),
        external_reference=data.get("external_reference"),
        payment_method_id=data.get("payment_method_id"),
        payment_type_id=data.get("payment_type_id"),
        date_approved=data.get("date_approved"),
        transaction_amount=float(amount) if amount is not None else None,
        fee_details=data.get("fee_details") or [],
        point_of_interaction=data.get("point_of_interaction"),
    )


class MercadoPagoGateway:
    def __init__(
        self,
        access_token: str | None,
        *,
        base_url: str = "https://api.mercadopago.com",
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._access_token = access_token
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        if not self._access_token:
            raise GatewayError("MERCADO_PAGO_ACCESS_TOKEN not configured")
        headers = {"Authorization": f"Bearer {self._access_token}"}
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def create_preference(self, request: PreferenceRequest) -> PaymentPreference:
        body = build_preference_body(request)
        try:
            response = self._client.post(
                "/checkout/preferences",
                json=body,
                headers=self._headers(idempotency_key=f"preference-{request.order_id}"),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Mercado Pago preference failed order_id=%s status=%s body=%s",
                request.order_id,
                exc.response.status_code,
                exc.response.text,
            )
            raise GatewayError("Preference creation failed", status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.warning("Mercado Pago preference failed order_id=%s error=%s", request.order_id, exc)
            raise GatewayError("Preference creation failed") from exc
        data = response.json()
        if not isinstance(data, dict) or not data.get("id"):
            raise GatewayError("Preference response without id")
        return PaymentPreference(
            id=str(data["id"]),
            init_point=data.get("init_point"),
            sandbox_init_point=data.get("sandbox_init_point"),
        )

    def create_payment(self, request: PaymentRequest) -> GatewayPayment:
        body = build_payment_body(request)
        key = request.idempotency_key or str(uuid.uuid4())
        try:
            response = self._client.post("/v1/payments", json=body, headers=self._headers(idempotency_key=key))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Mercado Pago payment creation failed order_id=%s status=%s body=%s",
                request.order_id,
                exc.response.status_code,
                exc.response.text,
            )
            raise GatewayError("Payment creation failed", status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.warning("Mercado Pago payment creation failed order_id=%s error=%s", request.order_id, exc)
            raise GatewayError("Payment creation failed") from exc
        data = response.json()
        if not isinstance(data, dict) or not data.get("id"):
            raise GatewayError("Payment response without id")
        return _payment_from_response(data)

    def get_payment(self, payment_id: str) -> GatewayPayment:
        try:
            response = self._client.get(f"/v1/payments/{payment_id}", headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Mercado Pago payment fetch failed payment_id=%s status=%s",
                payment_id,
                exc.response.status_code,
            )
            raise GatewayError("Payment fetch failed", status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.warning("Mercado Pago payment fetch failed payment_id=%s error=%s", payment_id, exc)
            raise GatewayError("Payment fetch failed") from exc
        data = response.json()
        if not isinstance(data, dict):
            raise GatewayError("Invalid payment response")
        return _payment_from_response(data)

    def close(self) -> None:
        self._client.close()


# Dependency
def get_payment_gateway():
    gateway = MercadoPagoGateway(
        settings.mercado_pago_access_token,
        base_url=settings.mercado_pago_api_url,
        timeout=settings.mercado_pago_timeout_seconds,
    )
    try:
        yield gateway
    finally:
        gateway.close()
