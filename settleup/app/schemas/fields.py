"""
schemas/fields.py — Custom marshmallow fields shared by the request schemas.

IMPORTANT: Inherits from marshmallow fields directly — never ma.* fields.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import fields, validate

from settleup.app.errors import ErrorCode
from settleup.app.money import MAX_MINOR_UNITS, to_minor_units

# Applied to every amount and share so that no value overflows its BIGINT column.
within_storable_range = validate.Range(
    min=-MAX_MINOR_UNITS,
    max=MAX_MINOR_UNITS,
    error="Amount is too large.",
)


class MinorUnits(fields.Decimal):
    """
    A monetary amount in major units on the wire, an int of minor units in Python.

        "12.50"  →  1250
        12       →  1200
        "12.505" →  ValidationError(INVALID_AMOUNT_PRECISION)
        "1e30"   →  ValidationError("Amount is too large.")

    Input with more than 2 decimal places is REJECTED, never rounded.
    The sign is kept: range rules (negative shares, zero settlements) belong
    to validation_service, which reports them as named violations.
    """

    default_error_messages = {
        "precision": ErrorCode.INVALID_AMOUNT_PRECISION,
        "too_large": "Amount is too large.",
    }

    def _deserialize(self, value, attr, data, **kwargs) -> int:
        major: Decimal = super()._deserialize(value, attr, data, **kwargs)
        # Decimal("10.123").as_tuple().exponent == -3 → 3 dp → reject
        if major.as_tuple().exponent < -2:
            raise self.make_error("precision")
        try:
            return to_minor_units(major)
        except ValueError as exc:
            raise self.make_error("too_large") from exc
