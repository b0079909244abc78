"""
Money arithmetic tests.

Verifies:
- Every result is rounded half-up to 2 decimal places
- Float inputs do not leak binary noise into totals
- Change and cash suggestions used at the PDV
"""

import random
from decimal import Decimal
from fractions import Fraction

from app.services.pricing import (
    calculate_change,
    clamp_money,
    percentage_of,
    round_money,
    safe_add,
    safe_divide,
    safe_multiply,
    safe_subtract,
    suggest_cash_amounts,
    to_float,
)


def _reference_round(value: Fraction) -> Decimal:
    """Half-up rounding to cents computed with exact rationals."""
    cents = value * 100
    sign = -1 if cents < 0 else 1
    magnitude = abs(cents)
    whole = magnitude.numerator // magnitude.denominator
    if magnitude - whole >= Fraction(1, 2):
        whole += 1
    return Decimal(sign * whole) / Decimal(100)


# =============================================================================
# ROUNDING
# =============================================================================


class TestRounding:
    def test_half_up_at_midpoint(self):
        assert round_money("2.345") == Decimal("2.35")
        assert round_money("2.344") == Decimal("2.34")
        assert round_money("-2.345") == Decimal("-2.35")

    def test_float_inputs_use_shortest_repr(self):
        assert safe_add(0.1, 0.2) == Decimal("0.30")
        assert safe_multiply(19.99, 3) == Decimal("59.97")
        assert round_money(1.005) == Decimal("1.01")

    def test_results_always_have_two_places(self):
        for value in (safe_add(1, 2), safe_subtract("10", "0.5"), safe_multiply("3", "7"), percentage_of("80", "12.5")):
            assert value.as_tuple().exponent == -2

    def test_matches_exact_rational_reference(self):
        rng = random.Random(20240611)
        for _ in range(500):
            a = Decimal(rng.randint(-10_000_00, 10_000_00)) / Decimal(100)
            b = Decimal(rng.randint(1, 5000)) / Decimal(rng.choice([1, 10, 100, 1000]))
            assert safe_multiply(a, b) == _reference_round(Fraction(a) * Fraction(b))
            assert safe_add(a, b) == _reference_round(Fraction(a) + Fraction(b))
            assert safe_divide(a, b) == _reference_round(Fraction(a) / Fraction(b))

    def test_divide_by_zero_returns_zero(self):
        assert safe_divide(10, 0) == Decimal("0.00")


# =============================================================================
# CLAMPING AND CHANGE
# =============================================================================


class TestClampAndChange:
    def test_clamp_bounds(self):
        assert clamp_money(-5) == Decimal("0.00")
        assert clamp_money("150", 0, 100) == Decimal("100.00")
        assert clamp_money("42.424") == Decimal("42.42")

    def test_change_is_never_negative(self):
        assert calculate_change("100", "87.35") == Decimal("12.65")
        assert calculate_change("50", "87.35") == Decimal("0.00")

    def test_to_float(self):
        assert to_float(Decimal("10.005")) == 10.01
        assert to_float(None) == 0.0


# =============================================================================
# CASH SUGGESTIONS
# =============================================================================


class TestCashSuggestions:
    def test_rounds_up_to_common_bills(self):
        assert suggest_cash_amounts("87.35") == [
            Decimal("90.00"),
            Decimal("100.00"),
        ]

    def test_exact_amounts_are_kept_once(self):
        assert suggest_cash_amounts("100") == [Decimal("100.00")]

    def test_suggestions_cover_total(self):
        for total in ("0.01", "12.50", "249.90", "1234.56"):
            suggestions = suggest_cash_amounts(total)
            assert suggestions
            assert all(value >= Decimal(total) for value in suggestions)
            assert suggestions == sorted(set(suggestions))

    def test_empty_for_non_positive_total(self):
        assert suggest_cash_amounts(0) == []
        assert suggest_cash_amounts("-3") == []
