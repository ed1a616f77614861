"""Decimal conversion helpers shared by the numeric modules"""

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Optional

# 34 significant digits, half-up: every replica must round the same way
DECIMAL_CONTEXT = Context(prec=34, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert ints, floats, strings and Decimals to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. Returns None for values that cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def is_positive_finite(value: Optional[Decimal]) -> bool:
    return value is not None and value.is_finite() and value > 0


def canonical(value: Decimal) -> str:
    """Plain-notation string that is equal for numerically equal decimals"""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def quantize(value: Decimal, places: int) -> Decimal:
    """Round half-up to a fixed number of decimal places"""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
