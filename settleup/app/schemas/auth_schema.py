"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py: DUPLICATE_EMAIL (cross-entity: requires a DB
    lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates


class RegisterSchema(Schema):
    """
    POST /auth/register

      name     : 2–50 chars, not blank
      email    : valid email format; stored lower-cased
      password : 6–128 chars
    """

    name = fields.Str(
        required=True,
        validate=validate.Length(
            min=2,
            max=50,
            error="Name must be between 2 and 50 characters.",
        ),
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=6,
            max=128,
            error="Password must be between 6 and 128 characters.",
        ),
    )

    @validates("name")
    def validate_name_not_blank(self, value: str, **kwargs) -> None:
        if len(value.strip()) < 2:
            raise ValidationError("Name must contain at least 2 non-space characters.")


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)
