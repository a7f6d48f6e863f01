"""
schemas/settlement_schema.py — Marshmallow schemas for settlement endpoints.

Validation responsibility:
  - This file: field types, decimal precision, note length.
  - services/validation_service.py:
      - SAME_USER_SETTLEMENT  — from_user_id comes from flask.g (HTTP context),
                                which schemas never see
      - NON_POSITIVE_AMOUNT   — reported together with the other violations
      - SETTLEMENT_USER_NOT_FOUND
  - services/settlement_service.py:
      - OVERPAYMENT warning (201) — requires a balance lookup.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from settleup.app.schemas.common_schema import PaginationSchema
from settleup.app.schemas.fields import MinorUnits, within_storable_range


class CreateSettlementSchema(Schema):
    """
    POST /settlements

    Records a direct payment from the authenticated user (taken from
    flask.g.user_id in the route, never from the body) to `to_user_id`.
    Over-payment is allowed; the service returns a warning.
    """

    to_user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="to_user_id must be a positive integer."),
    )

    amount = MinorUnits(required=True, validate=within_storable_range)

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=200, error="Note must be at most 200 characters."),
    )


class SettlementQuerySchema(PaginationSchema):
    """GET /settlements?with_user=&page=&limit="""

    class Meta:
        unknown = EXCLUDE

    with_user = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="with_user must be a positive integer."),
    )
