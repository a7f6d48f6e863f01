"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, enum values, decimal precision
      - Non-empty-after-trim enforcement for title
      - PATCH must change at least one field
  - services/validation_service.py (all collected into one ValidationFailure):
      - PAYER_NOT_FOUND, PARTICIPANT_NOT_FOUND  — require DB lookups
      - DUPLICATE_PARTICIPANT, NEGATIVE_SHARE,
        SHARE_SUM_MISMATCH, NO_PARTICIPANTS     — reported together with the
                                                  lookups, so they live there too
  - services/expense_service.py:
      - EXPENSE_DELETED (422), FORBIDDEN (403), EXPENSE_VERSION_CONFLICT (409)

PATCH has no payer field: the payer of an expense is fixed at creation, and
an unknown `payer_id` key is rejected like any other unknown field.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from settleup.app.errors import ErrorCode
from settleup.app.models.expense import SplitMethod
from settleup.app.schemas.fields import MinorUnits, within_storable_range


def _validate_non_empty_after_trim(value: str) -> None:
    """
    validate.Length(min=1) alone allows whitespace-only strings like "   ".
    Mirrors the DB CHECK(LENGTH(TRIM(title)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_title_validators = [
    validate.Length(
        min=1,
        max=100,
        error="Title must be between 1 and 100 characters.",
    ),
    _validate_non_empty_after_trim,
]


class ParticipantInputSchema(Schema):
    """One entry in the `participants` array. The share may be any sign here."""

    user_id = fields.Int(
        required=True,
        strict=True,   # reject floats like 1.0
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )

    share = MinorUnits(required=True, validate=within_storable_range)


class CreateExpenseSchema(Schema):
    """
    POST /expenses

    `payer_id` defaults to the caller (filled in by expense_service).
    `split_method` is stored for display and editing; the ledger always uses
    the explicit shares.
    """

    title = fields.Str(required=True, validate=_title_validators)

    amount = MinorUnits(
        required=True,
        validate=[
            validate.Range(min=0, error="Amount must not be negative."),
            within_storable_range,
        ],
    )

    payer_id = fields.Int(
        load_default=None,
        strict=True,
        validate=validate.Range(min=1, error="payer_id must be a positive integer."),
    )

    split_method = fields.Enum(
        SplitMethod,
        load_default=SplitMethod.EQUAL,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_METHOD},
    )

    # An empty list passes here and is reported as NO_PARTICIPANTS.
    participants = fields.List(
        fields.Nested(ParticipantInputSchema),
        required=True,
    )


class PatchExpenseSchema(Schema):
    """
    PATCH /expenses/:id

    All fields are optional; only provided fields change. Whatever is sent,
    the resulting state (amount + participants) is re-validated as a whole.

    `expected_version` lets a client fail fast with EXPENSE_VERSION_CONFLICT
    when the record changed since it was read.
    """

    title = fields.Str(validate=_title_validators)

    amount = MinorUnits(
        validate=[
            validate.Range(min=0, error="Amount must not be negative."),
            within_storable_range,
        ],
    )

    split_method = fields.Enum(
        SplitMethod,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_METHOD},
    )

    participants = fields.List(fields.Nested(ParticipantInputSchema))

    expected_version = fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="expected_version must be a positive integer."),
    )

    @validates_schema
    def validate_has_changes(self, data: dict, **kwargs) -> None:
        editable = {"title", "amount", "split_method", "participants"}
        if not editable & data.keys():
            raise ValidationError(
                "Provide at least one of: title, amount, split_method, participants."
            )


class DeleteExpenseSchema(Schema):
    """DELETE /expenses/:id — optional body."""

    reason = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=200, error="Reason must be at most 200 characters."),
    )
