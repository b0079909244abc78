from __future__ import annotations

from app.domain.core.enums import OrderStatus, PaymentStatus

# Status bruto do Mercado Pago -> (payment_status, status do pedido)
GATEWAY_STATUS_MAP: dict[str, tuple[PaymentStatus, OrderStatus]] = {
    "pending": (PaymentStatus.pending, OrderStatus.pending),
    "approved": (PaymentStatus.approved, OrderStatus.confirmed),
    "authorized": (PaymentStatus.approved, OrderStatus.confirmed),
    "in_process": (PaymentStatus.processing, OrderStatus.pending),
    "in_mediation": (PaymentStatus.processing, OrderStatus.pending),
    "rejected": (PaymentStatus.rejected, OrderStatus.cancelled),
    "cancelled": (PaymentStatus.cancelled, OrderStatus.cancelled),
    "refunded": (PaymentStatus.refunded, OrderStatus.refunded),
    "charged_back": (PaymentStatus.refunded, OrderStatus.refunded),
}

# Transições aceitas pelo conciliador de pagamentos online.
# Estorno, chargeback e cancelamento sempre entram. Só é bloqueado o que reabre um pedido
# já pago ou estornado (pending depois de confirmed, approved atrasado depois de refunded).
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset(
        {OrderStatus.pending, OrderStatus.confirmed, OrderStatus.cancelled, OrderStatus.refunded}
    ),
    OrderStatus.confirmed: frozenset({OrderStatus.confirmed, OrderStatus.cancelled, OrderStatus.refunded}),
    OrderStatus.cancelled: frozenset(
        {OrderStatus.cancelled, OrderStatus.pending, OrderStatus.confirmed, OrderStatus.refunded}
    ),
    OrderStatus.refunded: frozenset({OrderStatus.refunded, OrderStatus.cancelled}),
    OrderStatus.completed: frozenset(),
}


class UnknownGatewayStatus(ValueError):
    def __init__(self, status: str | None) -> None:
        super().__init__(f"Unknown payment status: {status!r}")
        self.status = status


def map_gateway_status(status: str | None) -> tuple[PaymentStatus, OrderStatus]:
    key = (status or "").strip().lower()
    try:
        return GATEWAY_STATUS_MAP[key]
    except KeyError:
        raise UnknownGatewayStatus(status) from None


def is_transition_allowed(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
