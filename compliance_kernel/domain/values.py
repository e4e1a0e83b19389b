"""
Values -- Decimal helpers shared by every fee computation.

Responsibility:
    Centralizes precision, rounding and boundary conversion so that gates,
    the rate table and the fee calculator use identical rules.

Invariants enforced:
    - Monetary amounts are rounded to cents with ROUND_HALF_UP.
    - Effective rates are rounded to four places with ROUND_HALF_UP.
    - Floats are only accepted at the payload boundary and are converted
      through ``str()`` so that 10.01 stays 10.01, never 10.0099999...
    - Payload amounts are bounded by ``MAX_AMOUNT``.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

SUPPORTED_CURRENCY = "USD"

MONEY_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")

# Tolerance for item-sum and fee-sum consistency checks (one cent)
AMOUNT_TOLERANCE = Decimal("0.01")

# Largest accepted item amount or totalAmount; keeps every fee quantizable
# to cents within the default 28-digit context
MAX_AMOUNT = Decimal("999999999999999.99")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def is_number(value: Any) -> bool:
    """True for finite int/float/Decimal values; booleans are rejected."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def to_decimal(value: Any) -> Decimal:
    """
    Convert a boundary value to Decimal.

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
    raise ValueError(f"Not a number: {value!r}")


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Round a ratio to four decimal places."""
    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def format_percent(rate: Decimal) -> str:
    """Render a rate as a percentage with two places (0.0225 -> '2.25')."""
    return str((rate * HUNDRED).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP))


def format_amount(amount: Decimal) -> str:
    """
    Render an amount with thousands separators and no trailing zeros.

    2300000 -> '2,300,000'; 1234.50 -> '1,234.5'
    """
    return f"{round_money(amount).normalize():,f}"
