"""
Notificações por e-mail (confirmação de pedido, pagamento confirmado).
Melhor esforço: no máximo uma tentativa, disparada depois do commit; falha só gera log.
"""
from __future__ import annotations

import logging
from typing import Protocol

import httpx

from app.db import settings

logger = logging.getLogger(__name__)

ORDER_CONFIRMATION = "order-confirmation"
PAYMENT_CONFIRMED = "payment-confirmed"


class Notifier(Protocol):
    async def send(self, kind: str, order_id: str) -> None: ...


class EmailNotifier:
    def __init__(self, url: str | None, token: str | None = None, timeout: float = 10.0) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout

    async def send(self, kind: str, order_id: str) -> None:
        if not self._url:
            logger.info("Email send skipped: EMAIL_SERVICE_URL not configured (type=%s order_id=%s)", kind, order_id)
            return
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json={"type": kind, "orderId": order_id}, headers=headers)
            response.raise_for_status()
        logger.info("Email sent type=%s order_id=%s", kind, order_id)


async def notify_best_effort(notifier: Notifier, kind: str, order_id: str) -> None:
    try:
        await notifier.send(kind, order_id)
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Email send failed type=%s order_id=%s status=%s body=%s",
            kind,
            order_id,
            exc.response.status_code,
            exc.response.text,
        )
    except Exception:
        logger.exception("Failed to send email type=%s order_id=%s", kind, order_id)


# Dependency
def get_notifier() -> Notifier:
    return EmailNotifier(
        settings.email_service_url,
        settings.email_service_token,
        timeout=settings.email_timeout_seconds,
    )
