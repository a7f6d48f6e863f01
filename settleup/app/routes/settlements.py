"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Special: create_settlement returns (Settlement, warnings[]).
  If warnings is non-empty (OVERPAYMENT), the route includes them in the
  response envelope: {"data": {...}, "warnings": [{"code": "OVERPAYMENT", ...}]}.
  The HTTP status is still 201 — over-payment does NOT block the request.

Endpoints (base url_prefix=/api/v1/settlements):
  POST   /settlements                  → 201  record a payment from the caller
  GET    /settlements?with_user=&page= → 200  payments the caller sent or received
  GET    /settlements/:id              → 200  one payment (parties only)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.settlement import Settlement
from settleup.app.money import to_major_units
from settleup.app.schemas.common_schema import pagination_meta, resolve_page
from settleup.app.schemas.settlement_schema import CreateSettlementSchema, SettlementQuerySchema
from settleup.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


# ── Serialization helper ───────────────────────────────────────────────────

def _serialize_settlement(s: Settlement) -> dict:
    """Converts a Settlement ORM object to a plain dict for JSON output."""
    return {
        "id": s.id,
        "from_user": {"id": s.from_user_id, "name": s.from_user.name},
        "to_user": {"id": s.to_user_id, "name": s.to_user.name},
        "amount": s.amount,
        "amount_display": to_major_units(s.amount),
        "note": s.note,
        "created_by": s.created_by_id,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@settlements_bp.route("", methods=["POST"])
@require_auth
def create_settlement():
    """
    POST /settlements — Record a payment.

    from_user is the authenticated caller (g.user_id), never the body.
    """
    data = CreateSettlementSchema().load(request.get_json(force=True) or {})
    settlement, warnings = settlement_service.create_settlement(
        from_user_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_settlement(settlement), "warnings": warnings}), 201


@settlements_bp.route("", methods=["GET"])
@require_auth
def list_settlements():
    args = SettlementQuerySchema().load(request.args)
    page, limit = resolve_page(args, current_app.config)
    settlements, total = settlement_service.list_settlements(
        caller_id=g.user_id,
        session=db.session,
        with_user_id=args["with_user"],
        page=page,
        limit=limit,
    )
    return jsonify({
        "data": [_serialize_settlement(s) for s in settlements],
        "pagination": pagination_meta(page, limit, total),
        "warnings": [],
    }), 200


@settlements_bp.route("/<int:settlement_id>", methods=["GET"])
@require_auth
def get_settlement(settlement_id: int):
    settlement = settlement_service.get_settlement(
        settlement_id=settlement_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _serialize_settlement(settlement), "warnings": []}), 200
