"""
routes/expenses.py — Expense route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - _serialize_expense() is a pure data-shape helper — not business logic.

Endpoints (base url_prefix=/api/v1/expenses):
  POST   /expenses               → 201  create expense
  POST   /expenses/validate      → 200  pre-flight share check, nothing written
  GET    /expenses               → 200  list the caller's active expenses
  GET    /expenses/:id           → 200  get expense + participants (deleted too)
  PATCH  /expenses/:id           → 200  partial update (re-validated as a whole)
  DELETE /expenses/:id           → 200  soft-delete, optional {"reason": ...}
  POST   /expenses/:id/restore   → 200  undo a soft-delete
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.expense import Deleted, Expense
from settleup.app.money import to_major_units
from settleup.app.schemas.common_schema import PaginationSchema, pagination_meta, resolve_page
from settleup.app.schemas.expense_schema import (
    CreateExpenseSchema,
    DeleteExpenseSchema,
    PatchExpenseSchema,
)
from settleup.app.services import balance_service, expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helper ───────────────────────────────────────────────────
# Pure data-shaping: no DB access, no logic.

def _serialize_deletion(expense: Expense) -> dict | None:
    deletion = expense.deletion
    if not isinstance(deletion, Deleted):
        return None
    return {
        "deleted_by": deletion.by,
        "deleted_at": deletion.at.isoformat(),
        "reason": deletion.reason,
    }


def _serialize_expense(expense: Expense) -> dict:
    """Converts an Expense ORM object to a plain dict for JSON output."""
    return {
        "id": expense.id,
        "title": expense.title,
        "amount": expense.amount,
        "amount_display": to_major_units(expense.amount),
        "payer": {
            "id": expense.payer_id,
            "name": expense.payer.name,
        },
        "split_method": expense.split_method.value,
        "participants": [
            {
                "user_id": p.user_id,
                "name": p.user.name,
                "share": p.share,
                "share_display": to_major_units(p.share),
            }
            for p in expense.participants
        ],
        "created_by": expense.created_by_id,
        "version": expense.version,
        "is_deleted": expense.is_deleted,
        "deletion": _serialize_deletion(expense),
        "created_at": expense.created_at.isoformat() if expense.created_at else None,
        "updated_at": expense.updated_at.isoformat() if expense.updated_at else None,
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@expenses_bp.route("", methods=["POST"])
@require_auth
def create_expense():
    """POST /expenses — Record a new expense. The payer defaults to the caller."""
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.create_expense(
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/validate", methods=["POST"])
@require_auth
def validate_expense():
    """
    POST /expenses/validate — Runs the creation rules against a proposed expense.

    Schema errors still return 400. Rule violations are returned as data with a
    200 so a client can show every problem before submitting.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    result = balance_service.validate_expense_input(
        amount=data["amount"],
        payer_id=data.get("payer_id") or g.user_id,
        participants=data["participants"],
        session=db.session,
    )
    return jsonify({
        "data": {
            "valid": result.ok,
            "violations": [v.to_dict() for v in result.violations],
        },
        "warnings": [],
    }), 200


@expenses_bp.route("", methods=["GET"])
@require_auth
def list_expenses():
    """GET /expenses?page=&limit= — Active expenses involving the caller, newest first."""
    page, limit = resolve_page(PaginationSchema().load(request.args), current_app.config)
    expenses, total = expense_service.list_expenses(
        caller_id=g.user_id,
        session=db.session,
        page=page,
        limit=limit,
    )
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "pagination": pagination_meta(page, limit, total),
        "warnings": [],
    }), 200


@expenses_bp.route("/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    """GET /expenses/:id — Expense detail, including its deletion state."""
    expense = expense_service.get_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/<int:expense_id>", methods=["PATCH"])
@require_auth
def edit_expense(expense_id: int):
    """
    PATCH /expenses/:id — Partial update.
    The payer cannot change. Send expected_version to fail fast on a stale read.
    """
    data = PatchExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.edit_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    """
    DELETE /expenses/:id — Soft-delete. The row and its participants stay for
    audit; balance computation excludes it. Repeating the call is harmless.
    """
    data = DeleteExpenseSchema().load(request.get_json(silent=True) or {})
    expense = expense_service.delete_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
        reason=data.get("reason"),
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/<int:expense_id>/restore", methods=["POST"])
@require_auth
def restore_expense(expense_id: int):
    """POST /expenses/:id/restore — Bring a soft-deleted expense back into balances."""
    expense = expense_service.restore_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200
