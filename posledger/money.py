"""
Decimal helpers for money and quantity math.

Invariants:
- Money and quantities are Decimal end to end; floats are converted through
  str() so 0.1 stays 0.1 instead of its binary approximation.
- Rounding happens only at output boundaries (quantize_money), never in the
  middle of a calculation.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWOPLACES = Decimal("0.01")


def to_decimal(value: Any, *, field: str = "value") -> Decimal:
    """
    Coerce user/database input into a Decimal.

    Accepts Decimal, int, float (via str), and numeric strings.
    None and "" become zero; booleans, NaN and infinities are rejected.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def optional_decimal(value: Any, *, field: str = "value") -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value, field=field)


def quantize_money(value: Any) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def decimal_to_str(value: Decimal | None) -> str | None:
    """JSON-safe rendering for to_dict() payloads."""
    if value is None:
        return None
    return str(value)
