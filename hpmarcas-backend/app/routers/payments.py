from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from app import schemas
from app.db import get_db
from app.services.gateway import PaymentGateway, get_payment_gateway
from app.services.payments import process_payment

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/process", response_model=schemas.PaymentProcessOut)
def process_payment_endpoint(
    payload: schemas.PaymentProcessIn,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    idempotency_key: str | None = Header(default=None, alias="x-idempotency-key"),
):
    result = process_payment(db, gateway, payload, idempotency_key=idempotency_key)
    payment = result.payment
    return {
        "success": True,
        "order_id": result.order_id,
        "payment": {
            "id": payment.id,
            "status": payment.status,
            "status_detail": payment.status_detail,
            "payment_method_id": payment.payment_method_id,
            "external_reference": payment.external_reference,
            "transaction_amount": payment.transaction_amount,
            "point_of_interaction": payment.point_of_interaction,
        },
    }


@router.get("/process")
def process_payment_status():
    return {"status": "ok", "message": "Payment processing API is running"}
