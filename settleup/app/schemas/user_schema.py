"""
schemas/user_schema.py — Query schema for the user directory lookup.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields


class UserLookupSchema(Schema):
    """GET /users?email="""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
