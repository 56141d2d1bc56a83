"""
Validation and formatting helpers.

Money is always ``Decimal``; amounts are stored with 8 decimal places and
percentages with 2.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from payout_engine.utils.exceptions import BusinessRuleViolation

MONEY_QUANT = Decimal("0.00000001")
PERCENT_QUANT = Decimal("0.01")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert input to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1.

    Raises:
        BusinessRuleViolation: Value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise BusinessRuleViolation(f"{field} must be a number") from e
    if not result.is_finite():
        raise BusinessRuleViolation(f"{field} must be a finite number")
    return result


def quantize_money(amount: Decimal) -> Decimal:
    """Truncate to storage precision (never rounds a payout up)."""
    return Decimal(amount).quantize(MONEY_QUANT, rounding=ROUND_DOWN)


def validate_amount(
    amount: Any,
    field: str = "amount",
    allow_zero: bool = False,
) -> Decimal:
    """
    Validate a money amount.

    Args:
        amount: Raw amount
        field: Field name for the error message
        allow_zero: Accept 0

    Returns:
        Amount as Decimal

    Raises:
        BusinessRuleViolation: Amount is negative (or zero when not allowed)
    """
    value = to_decimal(amount, field)
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise BusinessRuleViolation(f"{field} must be {qualifier}, got {value}")
    return value


def validate_percent(percent: Any, field: str = "percent") -> Decimal:
    """
    Validate a 0-100 percentage with at most 2 decimal places.

    Raises:
        BusinessRuleViolation: Out of range or too precise
    """
    value = to_decimal(percent, field)
    if value < 0 or value > 100:
        raise BusinessRuleViolation(f"{field} must be between 0 and 100")
    if value != value.quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP):
        raise BusinessRuleViolation(
            f"{field} allows at most 2 decimal places, got {value}"
        )
    return value


def normalize_email(email: str) -> str:
    """Lowercase, trimmed email; rejects obviously malformed input."""
    normalized = (email or "").strip().lower()
    if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
        raise BusinessRuleViolation(f"Invalid email: {email!r}")
    return normalized


def format_currency(amount: Decimal) -> str:
    """Format as ``$1,234.56``."""
    return f"${Decimal(amount).quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP):,}"
