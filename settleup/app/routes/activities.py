"""
routes/activities.py — Activity feed route handlers.

Endpoints (base url_prefix=/api/v1/activities):
  GET    /activities?kind=&unread_only=&page=&limit=  → 200
  GET    /activities/unread-count                     → 200
  PATCH  /activities/:id/read                         → 200
  PATCH  /activities/read-all                         → 200

Activities are written asynchronously after the originating request commits,
so a feed read immediately after a write may not include it yet.
"""

from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.activity import Activity
from settleup.app.schemas.activity_schema import FeedQuerySchema
from settleup.app.schemas.common_schema import pagination_meta, resolve_page
from settleup.app.services import activity_service

activities_bp = Blueprint("activities", __name__)


def _serialize_activity(activity: Activity, read_at: datetime | None) -> dict:
    return {
        "id": activity.id,
        "kind": activity.kind.value,
        "actor": {"id": activity.actor_id, "name": activity.actor.name},
        "payload": activity.payload,
        "is_read": read_at is not None,
        "read_at": read_at.isoformat() if read_at else None,
        "created_at": activity.created_at.isoformat() if activity.created_at else None,
    }


@activities_bp.route("", methods=["GET"])
@require_auth
def get_feed():
    args = FeedQuerySchema().load(request.args)
    page, limit = resolve_page(args, current_app.config)
    rows, total = activity_service.get_feed(
        user_id=g.user_id,
        session=db.session,
        page=page,
        limit=limit,
        kind=args["kind"],
        unread_only=args["unread_only"],
    )
    return jsonify({
        "data": [_serialize_activity(a, read_at) for a, read_at in rows],
        "pagination": pagination_meta(page, limit, total),
        "warnings": [],
    }), 200


@activities_bp.route("/unread-count", methods=["GET"])
@require_auth
def unread_count():
    count = activity_service.count_unread(user_id=g.user_id, session=db.session)
    return jsonify({"data": {"unread": count}, "warnings": []}), 200


@activities_bp.route("/read-all", methods=["PATCH"])
@require_auth
def mark_all_read():
    updated = activity_service.mark_all_read(user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"data": {"marked_read": updated}, "warnings": []}), 200


@activities_bp.route("/<int:activity_id>/read", methods=["PATCH"])
@require_auth
def mark_read(activity_id: int):
    target = activity_service.mark_read(
        activity_id=activity_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "activity_id": activity_id,
            "is_read": True,
            "read_at": target.read_at.isoformat(),
        },
        "warnings": [],
    }), 200
