"""
schemas/common_schema.py — Query-string schemas shared by list endpoints.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from collections.abc import Mapping

from marshmallow import EXCLUDE, Schema, fields, validate


class PaginationSchema(Schema):
    """?page=&limit= — both optional. Unrelated query parameters are ignored."""

    class Meta:
        unknown = EXCLUDE

    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1, error="page must be a positive integer."),
    )

    limit = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="limit must be a positive integer."),
    )


def resolve_page(data: dict, config: Mapping) -> tuple[int, int]:
    """
    Applies the configured default and ceiling to a loaded pagination dict.
    An oversized limit is clamped, not rejected.
    """
    limit = data.get("limit") or config.get("DEFAULT_PAGE_SIZE", 20)
    return data.get("page", 1), min(limit, config.get("MAX_PAGE_SIZE", 100))


def pagination_meta(page: int, limit: int, total: int) -> dict:
    """The `pagination` block of a list response envelope."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
