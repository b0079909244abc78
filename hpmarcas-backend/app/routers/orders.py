"""
Router de pedidos online: orquestra request/response e notificações em background.
Toda a lógica de negócio e persistência está em app.services.checkout.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from app import models, schemas
from app.db import get_db
from app.services.checkout import create_order
from app.services.gateway import PaymentGateway, get_payment_gateway
from app.services.notifications import ORDER_CONFIRMATION, Notifier, get_notifier, notify_best_effort

router = APIRouter(prefix="/api/orders", tags=["orders"])
logger = logging.getLogger(__name__)


def _get_sale_or_404(db: Session, order_id: str) -> models.Sale:
    sale = (
        db.query(models.Sale)
        .options(selectinload(models.Sale.items))
        .filter(models.Sale.id == order_id)
        .first()
    )
    if not sale:
        raise HTTPException(status_code=404, detail="Pedido nao encontrado")
    return sale


@router.post("/create", response_model=schemas.CreateOrderOut)
def create_order_endpoint(
    payload: schemas.CreateOrderIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    result = create_order(db, gateway, payload)

    background.add_task(notify_best_effort, notifier, ORDER_CONFIRMATION, result.order_id)

    return {
        "success": True,
        "order": {
            "id": result.order_id,
            "status": result.status,
            "payment_status": result.payment_status,
            "total_amount": result.total,
            "subtotal_amount": result.subtotal,
            "coupon_discount": result.discount_amount,
            "shipping_cost": result.shipping_cost,
            "payment_external_id": result.payment_external_id,
        },
        "payment_preference_id": result.preference.id,
        "payment_init_point": result.preference.init_point,
    }


@router.get("/{order_id}", response_model=schemas.OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db)):
    return _get_sale_or_404(db, order_id)


@router.get("/{order_id}/status", response_model=schemas.OrderStatusOut)
def get_order_status(order_id: str, db: Session = Depends(get_db)):
    sale = _get_sale_or_404(db, order_id)
    return {
        "orderId": sale.id,
        "status": sale.status,
        "paymentStatus": sale.payment_status,
        "paymentExternalId": sale.payment_external_id,
        "updatedAt": sale.updated_at,
        "isPaid": sale.payment_status == models.PaymentStatus.approved,
        "isConfirmed": sale.status == models.OrderStatus.confirmed,
    }
