from __future__ import annotations

import unicodedata
from typing import Iterable

from app.domain.core.enums import PaymentMethod, PaymentStatus

PDV_PAYMENT_METHODS = ("cash", "credit", "debit", "pix", "transfer")
PAYMENT_METHOD_LABELS = {
    "cash": "Dinheiro",
    "credit": "Cartão de Crédito",
    "debit": "Cartão de Débito",
    "pix": "PIX",
    "transfer": "Transferência",
}
PAYMENT_METHOD_ALIAS_MAP = {
    "dinheiro": "cash",
    "especie": "cash",
    "credito": "credit",
    "cartao_de_credito": "credit",
    "credit_card": "credit",
    "debito": "debit",
    "cartao_de_debito": "debit",
    "debit_card": "debit",
    "transferencia": "transfer",
    "ted": "transfer",
}


def _normalize_label(value: str) -> str:
    normalized = value.strip().lower()
    normalized = unicodedata.normalize("NFD", normalized)
    normalized = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    return normalized.replace("-", " ").replace(" ", "_")


def normalize_payment_method(raw: str | None) -> PaymentMethod:
    key = _normalize_label(str(raw or ""))
    value = PAYMENT_METHOD_ALIAS_MAP.get(key, key)
    if value not in PDV_PAYMENT_METHODS:
        raise ValueError("Invalid payment method")
    return PaymentMethod(value)


def normalize_payment_methods(methods: Iterable[str]) -> list[str]:
    result: list[str] = []
    for item in methods:
        if not str(item).strip():
            continue
        method = normalize_payment_method(item).value
        if method not in result:
            result.append(method)
    if not result:
        raise ValueError("At least one payment method is required")
    return result


def payment_method_label(method: PaymentMethod | str) -> str:
    value = method.value if isinstance(method, PaymentMethod) else str(method)
    return PAYMENT_METHOD_LABELS.get(value, value)


def pdv_payment_status(method: PaymentMethod) -> PaymentStatus:
    # Transferência só é conferida depois, no extrato.
    if method == PaymentMethod.transfer:
        return PaymentStatus.pending
    return PaymentStatus.approved
