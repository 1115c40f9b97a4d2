"""
Money handling.

All amounts inside the application are ``Decimal`` quantized to cents.
The local database stores integer cents; the external API sends amounts as
decimal strings on some endpoints and JSON numbers on others, so every value
crossing a boundary goes through ``parse_amount`` exactly once.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .validation import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# S/ 9,999,999.99 keeps cents inside a 32-bit integer column
MAX_AMOUNT = Decimal("9999999.99")


def quantize(value: Decimal) -> Decimal:
    result = value.quantize(CENT, rounding=ROUND_HALF_UP)
    # no "-0.00" on the wire
    return result if result else ZERO


def parse_amount(value, field: str = "amount", *, allow_none: bool = False) -> Decimal | None:
    """
    Parse a numeric or numeric-string amount into a cent-quantized Decimal.

    Rejects booleans, blanks, NaN/Infinity and anything that is not a number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        # repr round-trip avoids binary float noise (0.1 -> 0.1, not 0.1000000000000000055)
        amount = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return quantize(amount)


def to_cents(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return ZERO
    return quantize(Decimal(cents) / 100)


def to_str(amount: Decimal | None) -> str | None:
    """Wire format: plain decimal string with two places ("-20.00")."""
    if amount is None:
        return None
    return f"{quantize(amount):.2f}"


def format_currency(amount: Decimal, symbol: str = "S/") -> str:
    amount = quantize(amount)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol} {abs(amount):,.2f}"
