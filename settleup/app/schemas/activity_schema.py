"""
schemas/activity_schema.py — Query schema for the activity feed.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, fields

from settleup.app.errors import ErrorCode
from settleup.app.events import ActivityKind
from settleup.app.schemas.common_schema import PaginationSchema


class FeedQuerySchema(PaginationSchema):
    """GET /activities?kind=&unread_only=&page=&limit="""

    class Meta:
        unknown = EXCLUDE

    kind = fields.Enum(
        ActivityKind,
        load_default=None,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_ACTIVITY_KIND},
    )

    unread_only = fields.Bool(load_default=False)
