"""
routes/balances.py — Balance route handlers.

Layer rules:
  - Call ONE service, return envelope. Never commits: balances are read-only
    and recomputed from the stored records on every request.

Endpoints (base url_prefix=/api/v1/balances):
  GET /balances            → 200  caller's aggregate balance + per-counterparty breakdown
  GET /balances/:user_id   → 200  pairwise balance with one user + contributing records
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("", methods=["GET"])
@require_auth
def get_aggregate_balance():
    result = balance_service.get_aggregate_response(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route("/<int:user_id>", methods=["GET"])
@require_auth
def get_pairwise_balance(user_id: int):
    """
    GET /balances/:user_id

    Positive balance: that user owes the caller. Negative: the caller owes them.
    Only expenses one of the two paid and the other shares are counted.
    """
    result = balance_service.get_pairwise_response(
        user_id=g.user_id,
        other_id=user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
