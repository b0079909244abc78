"""
PIX payment creation tests (POST /api/payments/process).

Verifies:
- The order is found by its preference id or by its own id
- The amount charged is the stored order total
- The Mercado Pago payment id is stored and used by the webhook lookup
- Rejections: unknown order, already paid, amount mismatch, non-PIX method, gateway failure
"""

from decimal import Decimal

import pytest

from app import models


@pytest.fixture
def created_order(client, make_product, make_customer, order_payload):
    product = make_product(stock=5)
    customer, address = make_customer()
    resp = client.post(
        "/api/orders/create",
        json=order_payload(customer, address, [{"product_id": product.id, "quantity": 2}]),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return body["order"]["id"], body["payment_preference_id"], customer


def _reload(db, order_id):
    db.expire_all()
    return db.query(models.Sale).filter(models.Sale.id == order_id).first()


# =============================================================================
# PAYMENT CREATION
# =============================================================================


class TestProcessPayment:
    def test_creates_pix_payment_for_preference(self, client, db, gateway, created_order):
        order_id, preference_id, customer = created_order

        resp = client.post("/api/payments/process", json={"preference_id": preference_id})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] is True
        assert body["order_id"] == order_id
        payment = body["payment"]
        assert payment["status"] == "pending"
        assert payment["external_reference"] == order_id
        assert payment["transaction_amount"] == 200.0
        assert payment["point_of_interaction"]["transaction_data"]["qr_code"]

        request = gateway.payment_requests[0]
        assert request.amount == Decimal("200.00")
        assert request.payment_method_id == "pix"
        assert request.payer_email == customer.email
        assert (request.payer_first_name, request.payer_last_name) == ("Ana", "Souza")

        sale = _reload(db, order_id)
        assert sale.payment_external_id == payment["id"]
        assert sale.payment_status == models.PaymentStatus.pending
        assert sale.status == models.OrderStatus.pending

    def test_order_found_by_its_own_id(self, client, created_order):
        order_id, _, _ = created_order
        resp = client.post("/api/payments/process", json={"preference_id": order_id, "amount": 200})
        assert resp.status_code == 200
        assert resp.json()["order_id"] == order_id

    def test_payer_overrides(self, client, gateway, created_order):
        _, preference_id, _ = created_order
        client.post(
            "/api/payments/process",
            json={
                "preference_id": preference_id,
                "payer": {"email": "outra@example.com", "identification_number": "123.456.789-09"},
            },
        )
        request = gateway.payment_requests[0]
        assert request.payer_email == "outra@example.com"
        assert request.payer_document == "123.456.789-09"

    def test_idempotency_header_is_forwarded(self, client, gateway, created_order):
        _, preference_id, _ = created_order
        client.post(
            "/api/payments/process",
            json={"preference_id": preference_id},
            headers={"x-idempotency-key": "checkout-abc"},
        )
        assert gateway.payment_requests[0].idempotency_key == "checkout-abc"

    def test_webhook_matches_stored_payment_id(self, client, db, gateway, created_order, send_webhook):
        order_id, preference_id, _ = created_order
        payment_id = client.post("/api/payments/process", json={"preference_id": preference_id}).json()["payment"]["id"]

        gateway.add_payment(payment_id, "approved", "referencia-desconhecida")
        resp = send_webhook(payment_id)
        assert resp.status_code == 200
        assert resp.json()["order_id"] == order_id
        assert _reload(db, order_id).status == models.OrderStatus.confirmed

    def test_health(self, client):
        assert client.get("/api/payments/process").json()["status"] == "ok"


# =============================================================================
# REJECTIONS
# =============================================================================


class TestProcessPaymentErrors:
    def test_missing_reference(self, client):
        resp = client.post("/api/payments/process", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "missing_fields"

    def test_unknown_order(self, client, gateway):
        resp = client.post("/api/payments/process", json={"preference_id": "nao-existe"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "order_not_found"
        assert gateway.payment_requests == []

    def test_only_pix_online(self, client, created_order):
        _, preference_id, _ = created_order
        resp = client.post(
            "/api/payments/process",
            json={"preference_id": preference_id, "payment_method_id": "visa"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_payment_method"

    def test_amount_must_match_order_total(self, client, gateway, created_order):
        _, preference_id, _ = created_order
        resp = client.post("/api/payments/process", json={"preference_id": preference_id, "amount": 5})
        assert resp.status_code == 400
        assert resp.json()["error"] == "amount_mismatch"
        assert resp.json()["total"] == 200.0
        assert gateway.payment_requests == []

    def test_paid_order_is_not_charged_again(self, client, gateway, created_order, send_webhook):
        order_id, preference_id, _ = created_order
        gateway.add_payment("700", "approved", order_id)
        send_webhook("700")

        resp = client.post("/api/payments/process", json={"preference_id": order_id})
        assert resp.status_code == 409
        assert resp.json()["error"] == "order_already_paid"
        assert gateway.payment_requests == []

    def test_gateway_failure(self, client, db, gateway, created_order):
        order_id, preference_id, _ = created_order
        gateway.fail_payment = True
        resp = client.post("/api/payments/process", json={"preference_id": preference_id})
        assert resp.status_code == 502
        assert resp.json()["error"] == "payment_setup_failed"
        assert resp.json()["order_id"] == order_id
        assert _reload(db, order_id).payment_external_id == preference_id
