import hashlib
import hmac
import logging

from fastapi import HTTPException, status

from app.db import settings

logger = logging.getLogger(__name__)


def parse_signature_header(signature: str | None) -> tuple[str | None, str | None]:
    """Lê ``x-signature: ts=...,v1=...`` do Mercado Pago."""
    if not signature:
        return None, None
    ts = None
    v1 = None
    for part in signature.split(","):
        key, _, value = part.strip().partition("=")
        key = key.strip().lower()
        if key == "ts":
            ts = value.strip() or None
        elif key == "v1":
            v1 = value.strip() or None
    return ts, v1


def build_signature_manifest(data_id: str | None, request_id: str | None, ts: str) -> str:
    manifest = ""
    if data_id:
        normalized_id = data_id.lower() if data_id.isalnum() else data_id
        manifest += f"id:{normalized_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"
    return manifest


def sign_manifest(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def verify_mercadopago_signature(
    *,
    data_id: str | None,
    signature: str | None,
    request_id: str | None,
) -> None:
    secrets = settings.MERCADO_PAGO_WEBHOOK_SECRETS_LIST
    if not secrets:
        if settings.mercado_pago_webhook_allow_unsigned:
            logger.warning("Mercado Pago webhook accepted without signature check (no secret configured)")
            return
        raise HTTPException(status_code=500, detail="Webhook secret not configured")
    ts, v1 = parse_signature_header(signature)
    if not ts or not v1:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    manifest = build_signature_manifest(data_id, request_id, ts)
    for secret in secrets:
        if hmac.compare_digest(sign_manifest(secret, manifest), v1):
            return
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
