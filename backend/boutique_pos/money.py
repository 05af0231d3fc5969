# Overview: Fixed-point money helpers.

"""
Money is stored as integer cents and computed as Decimal quantized to two
places. Binary floats never touch an amount: JSON numbers are converted via
their string form before they enter Decimal.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# 9,999,999.99 keeps every amount inside a 32-bit cents column
MAX_AMOUNT_CENTS = 999_999_999


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field: str, *, allow_negative: bool = False) -> Decimal:
    """Parse a JSON amount (number or numeric string) into a 2-dp Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if abs(to_cents(amount)) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large")
    return quantize(amount)


def to_cents(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return quantize(Decimal(cents) / 100)


def format_cents(cents: int | None) -> str | None:
    """Serialize cents for JSON as a 2-dp string ("348.00")."""
    amount = from_cents(cents)
    return None if amount is None else str(amount)


def parse_rate(value, field: str = "rate") -> Decimal:
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not rate.is_finite() or rate < 0:
        raise ValidationError(f"{field} must be >= 0")
    return rate
