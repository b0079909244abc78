"""
Pytest fixtures for the HP Marcas backend tests.

Provides an in-memory SQLite database shared by the test session and the app,
a fake Mercado Pago gateway, a recording notifier and small model factories.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MERCADO_PAGO_WEBHOOK_SECRET"] = "test-webhook-secret-0123456789"
os.environ["MERCADO_PAGO_ACCESS_TOKEN"] = "TEST-access-token"
os.environ["MERCADO_PAGO_TEST_PAYMENT_IDS"] = "123456"

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.db import Base, get_db
from app.main import app
from app.security import build_signature_manifest, sign_manifest
from app.services.gateway import GatewayError, GatewayPayment, PaymentPreference, get_payment_gateway
from app.services.notifications import get_notifier

WEBHOOK_SECRET = os.environ["MERCADO_PAGO_WEBHOOK_SECRET"]

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class FakeGateway:
    """In-memory stand-in for the Mercado Pago REST API."""

    def __init__(self):
        self.preferences = []
        self.payments = {}
        self.fail_preference = False
        self.fail_payment = False
        self.payment_requests = []
        self.fetches = []

    def create_preference(self, request):
        if self.fail_preference:
            raise GatewayError("Preference creation failed", status_code=500)
        self.preferences.append(request)
        return PaymentPreference(
            id=f"pref-{request.order_id}",
            init_point=f"https://mp.test/checkout/{request.order_id}",
        )

    def create_payment(self, request):
        if self.fail_payment:
            raise GatewayError("Payment creation failed", status_code=400)
        self.payment_requests.append(request)
        payment = GatewayPayment(
            id=str(9000 + len(self.payment_requests)),
            status="pending",
            status_detail="pending_waiting_transfer",
            external_reference=request.order_id,
            payment_method_id=request.payment_method_id,
            payment_type_id="bank_transfer",
            transaction_amount=float(request.amount),
            point_of_interaction={"transaction_data": {"qr_code": f"00020126-PIX-{request.order_id[-8:]}"}},
        )
        self.payments[payment.id] = payment
        return payment

    def get_payment(self, payment_id):
        self.fetches.append(payment_id)
        if payment_id not in self.payments:
            raise GatewayError("Payment fetch failed", status_code=404)
        return self.payments[payment_id]

    def add_payment(self, payment_id, status, external_reference):
        self.payments[payment_id] = GatewayPayment(
            id=payment_id,
            status=status,
            external_reference=external_reference,
            payment_method_id="pix",
            payment_type_id="bank_transfer",
        )


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def send(self, kind, order_id):
        self.sent.append((kind, order_id))


@pytest.fixture(scope="function")
def db():
    """Fresh schema for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db, gateway, notifier):
    """Test client wired to the test database, fake gateway and recording notifier."""

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _uid():
    return str(uuid.uuid4())


@pytest.fixture
def make_product(db):
    def factory(
        name="Sauvage",
        retail_price="100.00",
        wholesale_price="80.00",
        stock=10,
        status=models.ProductStatus.active,
        sku=None,
        barcode=None,
        volumes=(),
    ):
        product = models.Product(
            id=_uid(),
            name=name,
            sku=sku or f"SKU-{_uid()[:8]}",
            barcode=barcode,
            retail_price=Decimal(retail_price),
            wholesale_price=Decimal(wholesale_price),
            stock=stock,
            status=status,
        )
        db.add(product)
        for size, unit, adjustment, volume_barcode in volumes:
            db.add(
                models.ProductVolume(
                    id=_uid(),
                    product=product,
                    size=size,
                    unit=unit,
                    price_adjustment=Decimal(adjustment),
                    barcode=volume_barcode,
                )
            )
        db.commit()
        db.refresh(product)
        return product

    return factory


@pytest.fixture
def make_customer(db):
    def factory(name="Ana Souza", customer_type=models.CustomerType.retail, with_address=True):
        customer = models.Customer(
            id=_uid(),
            name=name,
            email=f"{_uid()[:8]}@example.com",
            type=customer_type,
        )
        db.add(customer)
        address = None
        if with_address:
            address = models.CustomerAddress(
                id=_uid(),
                customer_id=customer.id,
                postal_code="01310100",
                street="Avenida Paulista",
                number="1000",
                city="São Paulo",
                state="SP",
            )
            db.add(address)
        db.commit()
        return customer, address

    return factory


@pytest.fixture
def make_coupon(db):
    def factory(
        code="BEMVINDO10",
        coupon_type=models.CouponType.percentage,
        value="10",
        max_discount=None,
        min_order_value=None,
        usage_limit=None,
        used_count=0,
        is_active=True,
        start_date=None,
        end_date=None,
    ):
        coupon = models.Coupon(
            id=_uid(),
            code=code,
            name=code.title(),
            type=coupon_type,
            value=Decimal(value),
            max_discount=Decimal(max_discount) if max_discount is not None else None,
            min_order_value=Decimal(min_order_value) if min_order_value is not None else None,
            usage_limit=usage_limit,
            used_count=used_count,
            is_active=is_active,
            end_date=end_date,
        )
        if start_date is not None:
            coupon.start_date = start_date
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return factory


@pytest.fixture
def order_payload():
    def build(customer, address, items, **extra):
        payload = {
            "customer_id": customer.id,
            "shipping_address_id": address.id,
            "items": items,
        }
        payload.update(extra)
        return payload

    return build


def signed_headers(data_id, request_id="req-1", ts="1700000000", secret=WEBHOOK_SECRET):
    manifest = build_signature_manifest(data_id, request_id, ts)
    return {
        "x-signature": f"ts={ts},v1={sign_manifest(secret, manifest)}",
        "x-request-id": request_id,
    }


@pytest.fixture
def send_webhook(client):
    """Posts a signed Mercado Pago payment notification."""

    def post(payment_id, event="payment"):
        return client.post(
            "/api/webhooks/mercadopago",
            json={"type": event, "data": {"id": payment_id}},
            headers=signed_headers(payment_id),
        )

    return post
