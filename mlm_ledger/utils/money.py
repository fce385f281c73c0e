"""
Money helpers.

All monetary arithmetic uses Decimal quantized to 8 places (MoneyType).
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from mlm_ledger.config.business_constants import MONEY_QUANTUM, ZERO
from mlm_ledger.utils.exceptions import InvalidAmount


def to_decimal(value: Any) -> Decimal:
    """
    Convert value to Decimal without float artifacts.

    Args:
        value: int, str, float or Decimal

    Returns:
        Decimal value

    Raises:
        InvalidAmount: If value is not numeric
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidAmount(value, "Amount must be a number")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmount(value, "Amount must be a number") from e

    if not result.is_finite():
        raise InvalidAmount(value, "Amount must be finite")
    return result


def quantize_money(value: Any, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Quantize value to 8 decimal places."""
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=rounding)


def floor_money(value: Any) -> Decimal:
    """Quantize value to 8 decimal places, rounding toward zero."""
    return quantize_money(value, rounding=ROUND_DOWN)


def positive_money(value: Any) -> Decimal:
    """
    Parse a strictly positive amount.

    Raises:
        InvalidAmount: If amount <= 0 or rounds to zero
    """
    amount = quantize_money(value)
    if amount <= ZERO:
        raise InvalidAmount(value)
    return amount


def non_negative_money(value: Any) -> Decimal:
    """
    Parse an amount that may be zero.

    Raises:
        InvalidAmount: If amount < 0
    """
    amount = quantize_money(value)
    if amount < ZERO:
        raise InvalidAmount(value, "Amount must not be negative")
    return amount


def percent_of(base: Decimal, percentage: Decimal) -> Decimal:
    """base * percentage / 100, quantized."""
    return quantize_money(to_decimal(base) * to_decimal(percentage) / Decimal("100"))
