"""
Erros de negócio levantados pelos serviços.
O handler registrado em app.main converte para JSON {"success": false, "error", "message", ...}.
"""
from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    status_code = 400
    error = "bad_request"

    def __init__(self, message: str, *, error: str | None = None, status_code: int | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.error, "message": self.message}
        body.update(self.extra)
        return body


class ValidationFailed(ServiceError):
    status_code = 400
    error = "validation_error"


class NotFound(ServiceError):
    status_code = 404
    error = "not_found"


class InsufficientStock(ServiceError):
    status_code = 400
    error = "insufficient_stock"

    def __init__(self, shortfalls: list[dict], message: str = "Estoque insuficiente para alguns produtos") -> None:
        super().__init__(message, validation_errors={"stock": shortfalls})
        self.shortfalls = shortfalls


class PersistenceFailed(ServiceError):
    status_code = 500
    error = "order_creation_failed"


class PaymentSetupFailed(ServiceError):
    status_code = 502
    error = "payment_setup_failed"


class PaymentFetchFailed(ServiceError):
    status_code = 500
    error = "payment_fetch_failed"


class UnknownPaymentStatus(ServiceError):
    status_code = 400
    error = "unknown_payment_status"
