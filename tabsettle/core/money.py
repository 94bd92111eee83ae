"""
Currency helpers shared by the settlement services
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Tolerance used by every settlement comparison
EPSILON = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize a numeric value to cents"""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse operator input into a finite Decimal, or None when it is not a number"""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def money_str(value: Decimal) -> str:
    """Format an amount with two decimals"""
    return f"{to_money(value):.2f}"
