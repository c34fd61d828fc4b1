# Overview: Conversion between API decimal amounts and stored integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

# Largest value every supported backend stores in an Integer column
MAX_STORED_CENTS = 2_147_483_647


def to_cents(value) -> int:
    """
    Convert a JSON number or numeric string to integer cents.

    Raises ValueError for anything that is not a finite number.
    Amounts with more than two decimals are rounded half-up.
    """
    if isinstance(value, bool):
        raise ValueError("not a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("not a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError("not a number")
    if not amount.is_finite():
        raise ValueError("not a number")
    return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int | None) -> float | None:
    """Cents -> JSON-friendly amount (e.g. 1999 -> 19.99)."""
    if cents is None:
        return None
    return float(Decimal(cents) / 100)
