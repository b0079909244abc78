import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.db import get_db
from app.security import verify_mercadopago_signature
from app.services.gateway import PaymentGateway, get_payment_gateway
from app.services.notifications import PAYMENT_CONFIRMED, Notifier, get_notifier, notify_best_effort
from app.services.reconciliation import extract_payment_id, reconcile_payment_notification

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/mercadopago")
async def mercadopago_webhook(
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    x_signature: str | None = Header(default=None, alias="x-signature"),
    x_request_id: str | None = Header(default=None, alias="x-request-id"),
):
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    query_params = dict(request.query_params)
    verify_mercadopago_signature(
        data_id=query_params.get("data.id") or extract_payment_id(payload),
        signature=x_signature,
        request_id=x_request_id,
    )

    # busca no gateway (httpx síncrono) e commits rodam fora do event loop
    result = await run_in_threadpool(reconcile_payment_notification, db, gateway, payload, query_params)
    if result.notify_payment_confirmed and result.order_id:
        background.add_task(notify_best_effort, notifier, PAYMENT_CONFIRMED, result.order_id)
    return result.to_response()


@router.get("/mercadopago")
def mercadopago_webhook_status(request: Request):
    params = request.query_params
    return {
        "status": "webhook_endpoint_active",
        "topic": params.get("topic") or params.get("type"),
        "id": params.get("id") or params.get("data.id"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
