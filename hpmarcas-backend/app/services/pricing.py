"""
Aritmética monetária usada por carrinho, checkout, PDV e cupons.
Todo valor passa por Decimal e é arredondado em 2 casas (ROUND_HALF_UP).
"""
from __future__ import annotations

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Number | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() usa a menor representação do float (0.1 -> "0.1"), evita o ruído binário
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number | None) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def safe_add(*values: Number) -> Decimal:
    return round_money(sum((to_decimal(v) for v in values), Decimal("0")))


def safe_subtract(a: Number, b: Number) -> Decimal:
    return round_money(to_decimal(a) - to_decimal(b))


def safe_multiply(a: Number, b: Number) -> Decimal:
    return round_money(to_decimal(a) * to_decimal(b))


def safe_divide(a: Number, b: Number) -> Decimal:
    divisor = to_decimal(b)
    if divisor == 0:
        return ZERO
    return round_money(to_decimal(a) / divisor)


def percentage_of(value: Number, percent: Number) -> Decimal:
    return round_money(to_decimal(value) * to_decimal(percent) / HUNDRED)


def apply_percentage_discount(value: Number, percent: Number) -> Decimal:
    return safe_subtract(value, percentage_of(value, percent))


def clamp_money(value: Number, low: Number = 0, high: Number | None = None) -> Decimal:
    result = to_decimal(value)
    if result < to_decimal(low):
        result = to_decimal(low)
    if high is not None and result > to_decimal(high):
        result = to_decimal(high)
    return round_money(result)


def calculate_change(amount_paid: Number, total: Number) -> Decimal:
    return clamp_money(safe_subtract(amount_paid, total))


def suggest_cash_amounts(total: Number) -> list[Decimal]:
    """Valores redondos acima do total para agilizar o troco no caixa."""
    amount = round_money(total)
    if amount <= 0:
        return []
    suggestions: list[Decimal] = []
    for step in (5, 10, 20, 50, 100):
        step_value = Decimal(step)
        rounded = (amount / step_value).to_integral_value(rounding=ROUND_CEILING) * step_value
        rounded = round_money(rounded)
        if rounded not in suggestions:
            suggestions.append(rounded)
    return suggestions


def to_float(value: Number | None) -> float:
    return float(round_money(value))
