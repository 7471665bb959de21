from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Best-effort conversion of incoming values to Decimal for currency math."""

    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return Decimal("0")
        cleaned = cleaned.replace("$", "").replace(",", "")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")
    return Decimal("0")


def quantize_currency(value: Any) -> Decimal:
    amount = to_decimal(value)
    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP) if amount else ZERO


def line_total(price: Any, quantity: int) -> Decimal:
    """``price × quantity`` on cent-rounded prices, so the product is exact."""

    return quantize_currency(quantize_currency(price) * Decimal(int(quantity)))


__all__ = ["TWOPLACES", "ZERO", "line_total", "quantize_currency", "to_decimal"]
