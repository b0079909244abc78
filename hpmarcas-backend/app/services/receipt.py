from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from app import models
from app.domain.config.payment_methods import payment_method_label

STORE_NAME = "HP MARCAS PERFUMES"
WIDTH = 38
SEPARATOR = "=" * WIDTH


def _fmt_money(value: Decimal | float | int | None) -> str:
    s = f"{float(value or 0):,.2f}"
    return "R$ " + s.replace(",", "X").replace(".", ",").replace("X", ".")


def _fmt_dt(value: datetime | None) -> tuple[str, str]:
    if not value:
        return "-", "-"
    return value.strftime("%d/%m/%Y"), value.strftime("%H:%M")


def format_money(value: Decimal | float | int | None) -> str:
    return _fmt_money(value)


def _row(label: str, value: str) -> str:
    return f"{label:<20}{value}"


def format_receipt(sale: models.Sale) -> str:
    """Comprovante não fiscal da venda do PDV (texto puro para impressora térmica)."""
    date, time = _fmt_dt(sale.created_at)
    customer_type = "Atacado" if sale.customer_type == models.CustomerType.wholesale else "Varejo"
    lines = [
        SEPARATOR,
        STORE_NAME.center(WIDTH),
        SEPARATOR,
        "",
        "CUPOM NÃO FISCAL",
        "",
        f"Data: {date}        Hora: {time}",
        f"Venda: {sale.id}",
        f"Vendedor: {sale.salesperson_name or 'Sistema'}",
        "",
        f"Cliente: {sale.customer_name or '-'}",
        f"Tipo: {customer_type}",
        "",
        SEPARATOR,
        "PRODUTOS",
        SEPARATOR,
    ]
    for index, item in enumerate(sale.items, start=1):
        name = item.product_name
        if item.volume_label:
            name = f"{name} {item.volume_label}"
        lines.append(f"{index:03d} {name}")
        if item.product_sku:
            lines.append(f"    SKU: {item.product_sku}")
        lines.append(f"    {item.quantity}x {_fmt_money(item.unit_price)} = {_fmt_money(item.total_price)}")
        if item.discount_amount and Decimal(item.discount_amount) > 0:
            lines.append(f"    Desconto item: -{_fmt_money(item.discount_amount)}")

    lines.extend(["", SEPARATOR, "RESUMO", SEPARATOR, _row("Subtotal:", _fmt_money(sale.subtotal))])
    if sale.discount_amount and Decimal(sale.discount_amount) > 0:
        label = "Desconto:"
        if sale.discount_percent and Decimal(sale.discount_percent) > 0:
            label = f"Desconto ({float(sale.discount_percent):.1f}%):"
        lines.append(_row(label, f"-{_fmt_money(sale.discount_amount)}"))
    lines.append(_row("TOTAL:", _fmt_money(sale.total)))
    lines.append("")
    lines.append(f"Pagamento: {payment_method_label(sale.payment_method)}")
    if sale.payment_method == models.PaymentMethod.cash and sale.amount_paid is not None:
        lines.append(_row("Valor Recebido:", _fmt_money(sale.amount_paid)))
        lines.append(_row("Troco:", _fmt_money(sale.change_amount)))
    if sale.notes:
        lines.append(f"Observações: {sale.notes}")
    lines.extend(["", SEPARATOR, "Obrigado pela preferência!".center(WIDTH), SEPARATOR])
    return "\n".join(lines) + "\n"
