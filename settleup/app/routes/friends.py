"""
routes/friends.py — Contact directory route handlers.

Endpoints (base url_prefix=/api/v1/friends):
  POST   /friends        → 201  add by email, optional nickname
  GET    /friends        → 200  friends with their current pairwise balance
  GET    /friends/:id    → 200  one friend entry
  PATCH  /friends/:id    → 200  change nickname
  DELETE /friends/:id    → 200  remove (only when settled up)

:id is the friendship id, not the friend's user id.
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.friendship import Friendship
from settleup.app.money import to_major_units
from settleup.app.schemas.common_schema import PaginationSchema, pagination_meta, resolve_page
from settleup.app.schemas.friend_schema import AddFriendSchema, UpdateFriendSchema
from settleup.app.services import friend_service
from settleup.app.services.balance_service import PairwiseBalance

friends_bp = Blueprint("friends", __name__)


def _serialize_friend(friendship: Friendship, pairwise: PairwiseBalance | None = None) -> dict:
    body = {
        "id": friendship.id,
        "friend": {
            "id": friendship.friend_id,
            "name": friendship.friend.name,
            "email": friendship.friend.email,
        },
        "nickname": friendship.nickname,
        "created_at": friendship.created_at.isoformat() if friendship.created_at else None,
        "updated_at": friendship.updated_at.isoformat() if friendship.updated_at else None,
    }
    if pairwise is not None:
        body["balance"] = {
            "amount": pairwise.balance,
            "amount_display": to_major_units(pairwise.balance),
            "status": pairwise.status.value,
        }
    return body


@friends_bp.route("", methods=["POST"])
@require_auth
def add_friend():
    data = AddFriendSchema().load(request.get_json(force=True) or {})
    friendship = friend_service.add_friend(
        user_id=g.user_id,
        email=data["email"],
        session=db.session,
        nickname=data.get("nickname"),
    )
    db.session.commit()
    return jsonify({"data": _serialize_friend(friendship), "warnings": []}), 201


@friends_bp.route("", methods=["GET"])
@require_auth
def list_friends():
    page, limit = resolve_page(PaginationSchema().load(request.args), current_app.config)
    rows, total = friend_service.list_friends(
        user_id=g.user_id,
        session=db.session,
        page=page,
        limit=limit,
    )
    return jsonify({
        "data": [_serialize_friend(f, pairwise) for f, pairwise in rows],
        "pagination": pagination_meta(page, limit, total),
        "warnings": [],
    }), 200


@friends_bp.route("/<int:friendship_id>", methods=["GET"])
@require_auth
def get_friend(friendship_id: int):
    friendship, pairwise = friend_service.get_friend(
        friendship_id=friendship_id,
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _serialize_friend(friendship, pairwise), "warnings": []}), 200


@friends_bp.route("/<int:friendship_id>", methods=["PATCH"])
@require_auth
def update_friend(friendship_id: int):
    data = UpdateFriendSchema().load(request.get_json(force=True) or {})
    friendship = friend_service.update_nickname(
        friendship_id=friendship_id,
        user_id=g.user_id,
        nickname=data["nickname"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_friend(friendship), "warnings": []}), 200


@friends_bp.route("/<int:friendship_id>", methods=["DELETE"])
@require_auth
def remove_friend(friendship_id: int):
    friend_service.remove_friend(
        friendship_id=friendship_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"removed": True, "friendship_id": friendship_id},
        "warnings": [],
    }), 200
