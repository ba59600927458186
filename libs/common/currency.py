"""Money utilities for the storefront.

Internal storage unit: Decimal with two places (NUMERIC(10, 2) columns).
API unit: Decimal serialized as string, e.g. "19.99".
Display unit: formatted string, e.g. "$1,234.50" or "$ 25.000" (COP).

Rounding
--------
Every computed amount is quantized to cents with ROUND_HALF_UP, so
19.995 -> 20.00 (not banker's rounding).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

# ─── constants ───────────────────────────────────────────────────────────────

CENTS = Decimal("0.01")
WHOLE = Decimal("1")
ZERO = Decimal("0")

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "COP": "$",
    "EUR": "€",
    "GBP": "£",
    "NGN": "₦",
}

Number = Union[Decimal, int, float, str]


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce a numeric value to Decimal. ``None`` and "" become 0."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() avoids binary float artifacts (0.1 -> 0.1000000000000000055...)
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Number) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_whole(value: Number) -> Decimal:
    """Round to a whole unit, half-up (COP has no cents in practice)."""
    return to_decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP)


# ─── display helpers ──────────────────────────────────────────────────────────


def format_price(amount: Number, currency: str = "USD") -> str:
    """Format an amount for display: ``format_price(1234.5)`` -> "$1,234.50"."""
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    value = quantize_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_cop(amount: Number) -> str:
    """Format Colombian pesos: dot thousands separator, no decimals."""
    value = int(round_whole(amount))
    grouped = f"{abs(value):,}".replace(",", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}$ {grouped}"
