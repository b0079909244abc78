"""
Mercado Pago adapter, signature and notifier tests (HTTP mocked with httpx.MockTransport).
"""

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from app.security import build_signature_manifest, parse_signature_header
from app.services.gateway import (
    GatewayError,
    MercadoPagoGateway,
    PaymentRequest,
    PreferenceRequest,
    build_payment_body,
    build_preference_body,
)
from app.services.notifications import EmailNotifier, notify_best_effort


def _gateway(handler, token="TEST-token"):
    client = httpx.Client(base_url="https://api.mercadopago.test", transport=httpx.MockTransport(handler))
    return MercadoPagoGateway(token, client=client)


def _request():
    return PreferenceRequest(
        order_id="4f6b1c2e-0000-4000-8000-00000000abcd",
        total=Decimal("215.00"),
        item_count=2,
        payer_name="Ana Souza",
    )


class TestPreference:
    def test_body_is_single_pix_line(self):
        body = build_preference_body(_request())
        assert body["items"][0]["title"] == "Pedido #0000abcd"
        assert body["items"][0]["unit_price"] == 215.0
        assert body["items"][0]["quantity"] == 1
        assert body["payment_methods"]["installments"] == 1
        assert {"id": "credit_card"} in body["payment_methods"]["excluded_payment_types"]
        assert body["external_reference"] == "4f6b1c2e-0000-4000-8000-00000000abcd"
        assert body["notification_url"].endswith("/api/webhooks/mercadopago")
        assert body["payer"]["email"]

    def test_create_preference(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["idempotency"] = request.headers["x-idempotency-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pref-1", "init_point": "https://mp/init"})

        preference = _gateway(handler).create_preference(_request())
        assert preference.id == "pref-1"
        assert preference.init_point == "https://mp/init"
        assert seen["auth"] == "Bearer TEST-token"
        assert seen["idempotency"].endswith("00000000abcd")

    def test_http_error_becomes_gateway_error(self):
        gateway = _gateway(lambda request: httpx.Response(400, json={"message": "bad"}))
        with pytest.raises(GatewayError) as exc:
            gateway.create_preference(_request())
        assert exc.value.status_code == 400

    def test_missing_token(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={}), token=None)
        with pytest.raises(GatewayError):
            gateway.get_payment("1")


class TestPaymentFetch:
    def test_parses_payment(self):
        def handler(request):
            assert request.url.path == "/v1/payments/42"
            return httpx.Response(
                200,
                json={
                    "id": 42,
                    "status": "approved",
                    "external_reference": "order-1",
                    "payment_method_id": "pix",
                    "transaction_amount": "215.0",
                },
            )

        payment = _gateway(handler).get_payment("42")
        assert payment.id == "42"
        assert payment.status == "approved"
        assert payment.transaction_amount == 215.0
        assert payment.snapshot()["payment_method"] == "pix"

    def test_not_found(self):
        gateway = _gateway(lambda request: httpx.Response(404, json={}))
        with pytest.raises(GatewayError) as exc:
            gateway.get_payment("404")
        assert exc.value.status_code == 404


class TestPaymentCreation:
    def _payment_request(self, **overrides):
        values = dict(
            order_id="4f6b1c2e-0000-4000-8000-00000000abcd",
            amount=Decimal("215.00"),
            payment_method_id="pix",
            payer_email="ana@example.com",
            payer_first_name="Ana",
            payer_last_name="Souza",
        )
        values.update(overrides)
        return PaymentRequest(**values)

    def test_body_carries_order_reference_and_document(self):
        body = build_payment_body(self._payment_request(payer_document="123.456.789-09"))
        assert body["transaction_amount"] == 215.0
        assert body["external_reference"] == "4f6b1c2e-0000-4000-8000-00000000abcd"
        assert body["description"].endswith("#0000abcd")
        assert body["payer"]["identification"] == {"type": "CPF", "number": "12345678909"}
        assert "identification" not in build_payment_body(self._payment_request())["payer"]

    def test_create_payment(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["idempotency"] = request.headers["x-idempotency-key"]
            return httpx.Response(
                201,
                json={
                    "id": 1234,
                    "status": "pending",
                    "external_reference": "4f6b1c2e-0000-4000-8000-00000000abcd",
                    "transaction_amount": 215.0,
                    "point_of_interaction": {"transaction_data": {"qr_code": "000201"}},
                },
            )

        payment = _gateway(handler).create_payment(self._payment_request(idempotency_key="k-1"))
        assert seen == {"path": "/v1/payments", "idempotency": "k-1"}
        assert payment.id == "1234"
        assert payment.point_of_interaction["transaction_data"]["qr_code"] == "000201"

    def test_rejected_payment_becomes_gateway_error(self):
        gateway = _gateway(lambda request: httpx.Response(400, json={"message": "invalid payer"}))
        with pytest.raises(GatewayError) as exc:
            gateway.create_payment(self._payment_request())
        assert exc.value.status_code == 400


class TestSignatureHelpers:
    def test_parse_header(self):
        assert parse_signature_header("ts=1704908010, v1=abc123") == ("1704908010", "abc123")
        assert parse_signature_header(None) == (None, None)
        assert parse_signature_header("garbage") == (None, None)

    def test_manifest_lowercases_alphanumeric_ids(self):
        assert build_signature_manifest("ABC123", "req", "1") == "id:abc123;request-id:req;ts:1;"
        assert build_signature_manifest(None, None, "1") == "ts:1;"


class TestNotifier:
    def test_posts_type_and_order_id(self, monkeypatch):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200)

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "app.services.notifications.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        asyncio.run(EmailNotifier("https://mail.test/send").send("payment-confirmed", "o-1"))
        assert seen["body"] == {"type": "payment-confirmed", "orderId": "o-1"}

    def test_failures_are_swallowed(self, monkeypatch):
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "app.services.notifications.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(lambda r: httpx.Response(503)), **kwargs),
        )
        asyncio.run(notify_best_effort(EmailNotifier("https://mail.test/send"), "order-confirmation", "o-2"))

    def test_skipped_without_url(self):
        asyncio.run(EmailNotifier(None).send("order-confirmation", "o-3"))
