from __future__ import annotations

import json
import logging
import os
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("app.request")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)
logger.propagate = False

SKIP_PATHS = frozenset({"/health"})

# canal da venda a partir do prefixo da rota
_CHANNELS = (
    ("/api/webhooks/", "webhook"),
    ("/api/pdv/", "pdv"),
    ("/api/orders/", "ecommerce"),
    ("/api/payments/", "ecommerce"),
    ("/api/coupons/", "ecommerce"),
)
_PDV_SESSION = re.compile(r"^/api/pdv/sessions/([^/]+)")
_ORDER_ID = re.compile(r"^/api/(?:orders|pdv/sales)/([0-9a-fA-F-]{36})")


def configure_logging() -> None:
    """Loggers de módulo (app.services.*, app.routers.*) em texto simples no stderr."""
    app_logger = logging.getLogger("app")
    if app_logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    app_logger.addHandler(handler)
    app_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


def _channel(path: str) -> str | None:
    for prefix, name in _CHANNELS:
        if path.startswith(prefix):
            return name
    return None


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Uma linha JSON por request, com X-Request-Id propagado na resposta."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        if request.url.path in SKIP_PATHS:
            response = await call_next(request)
            response.headers["X-Request-Id"] = request_id
            return response

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            entry = request_log_entry(request, request_id, _elapsed_ms(started), status=500)
            logger.exception(json.dumps(entry, ensure_ascii=True))
            raise

        entry = request_log_entry(request, request_id, _elapsed_ms(started), status=response.status_code)
        logger.log(_level_for(response.status_code), json.dumps(entry, ensure_ascii=True))
        response.headers["X-Request-Id"] = request_id
        return response


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def request_log_entry(request: Request, request_id: str, duration_ms: int, status: int) -> dict:
    path = request.url.path
    forwarded = request.headers.get("x-forwarded-for")
    client_ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    entry = {
        "event": "http_request",
        "request_id": request_id,
        "method": request.method,
        "path": path,
        "channel": _channel(path),
        "status": status,
        "duration_ms": duration_ms,
        "client_ip": client_ip,
    }
    session = _PDV_SESSION.match(path)
    if session:
        entry["pdv_session"] = session.group(1)
    order = _ORDER_ID.match(path)
    if order:
        entry["order_id"] = order.group(1)
    if entry["channel"] == "webhook":
        entry["signed"] = bool(request.headers.get("x-signature"))
        entry["mp_request_id"] = request.headers.get("x-request-id")
    return entry
