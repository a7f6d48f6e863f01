"""
routes/users.py — User directory lookup.

Endpoints (base url_prefix=/api/v1/users):
  GET /users?email=  → 200  find a registered user by email (case-insensitive)
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.schemas.user_schema import UserLookupSchema
from settleup.app.services import auth_service, user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("", methods=["GET"])
@require_auth
def lookup_user():
    args = UserLookupSchema().load(request.args)
    user = user_service.lookup_by_email(args["email"], db.session)
    return jsonify({"data": auth_service.build_user_dict(user), "warnings": []}), 200
