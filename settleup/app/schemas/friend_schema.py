"""
schemas/friend_schema.py — Marshmallow schemas for the contact directory.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

_nickname_length = validate.Length(
    min=1,
    max=50,
    error="Nickname must be between 1 and 50 characters.",
)


class AddFriendSchema(Schema):
    """POST /friends — nickname defaults to the friend's name."""

    email = fields.Email(required=True)
    nickname = fields.Str(load_default=None, validate=_nickname_length)


class UpdateFriendSchema(Schema):
    """PATCH /friends/:id"""

    nickname = fields.Str(required=True, validate=_nickname_length)
