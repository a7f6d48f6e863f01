"""
money.py — Fixed-point monetary helpers.

All ledger arithmetic is done on integers counting minor units (paise).
Major-unit Decimals exist only at the presentation edge: request parsing
and the `*_display` fields of responses. Nothing compares major-unit values
for equality.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow

MINOR_UNITS_PER_MAJOR = 100

# Largest value a BIGINT amount or share column holds.
MAX_MINOR_UNITS = 2**63 - 1

_ONE = Decimal("1")
_CENTS = Decimal("0.01")


def to_minor_units(major_amount: Decimal | int | float | str) -> int:
    """
    Converts a major-unit amount to an integer count of minor units.

    Multiplies by 100 and rounds half-up, so 10.005 -> 1001 and
    -10.005 -> -1001. Floats are routed through str() to avoid binary noise.

    Raises:
        ValueError: the value is not a finite number, or too large to represent.
    """
    if isinstance(major_amount, bool):
        raise ValueError("Booleans are not monetary amounts.")
    if isinstance(major_amount, float):
        major_amount = str(major_amount)
    try:
        value = Decimal(major_amount)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"{major_amount!r} is not a valid amount.") from exc
    if not value.is_finite():
        raise ValueError(f"{major_amount!r} is not a finite amount.")

    try:
        scaled = (value * MINOR_UNITS_PER_MAJOR).quantize(_ONE, rounding=ROUND_HALF_UP)
    except (InvalidOperation, Overflow) as exc:
        # The scaled value needs more digits than the decimal context allows.
        raise ValueError(f"{major_amount!r} is too large an amount.") from exc
    return int(scaled)


def to_major_units(minor_amount: int) -> Decimal:
    """Converts minor units to a 2-place Decimal, e.g. 12345 -> Decimal('123.45')."""
    return (Decimal(minor_amount) / MINOR_UNITS_PER_MAJOR).quantize(_CENTS)
