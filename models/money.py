"""
Money helpers shared by models and services
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """Convert a number or numeric string to Decimal without float drift"""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places (half-up); used once, at output"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(round_money(value))


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse user input; None when missing, malformed or not finite"""
    if isinstance(value, bool):
        return None
    try:
        result = to_decimal(value, None)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if result is None or not result.is_finite():
        return None
    return result
