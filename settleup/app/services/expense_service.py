"""
services/expense_service.py — Expense record store.

Rules enforced here:
  - Share rules (PAYER_NOT_FOUND, PARTICIPANT_NOT_FOUND, DUPLICATE_PARTICIPANT,
    NEGATIVE_SHARE, SHARE_SUM_MISMATCH, NO_PARTICIPANTS) via
    validation_service, on create AND on every edit (the proposed new state
    is validated as a whole, payer held fixed).
  - EXPENSE_DELETED (422)          — a soft-deleted expense cannot be edited
  - EXPENSE_NOT_DELETED (422)      — only a deleted expense can be restored
  - EXPENSE_VERSION_CONFLICT (409) — the client's expected_version is stale
  - FORBIDDEN (403)                — caller is not creator, payer or participant

Soft delete:
  Expenses are never hard-deleted. Deletion goes through
  Expense.mark_deleted() / Expense.restore(), and deleting an already-deleted
  expense is a no-op.

Read models for the ledger:
  find_active_involving() and find_active_between() are the ONLY sanctioned
  queries for balance purposes. Both filter out soft-deleted rows.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts; returns ORM objects or raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, AuthorizationFailure, ErrorCode, NotFoundFailure
from settleup.app.events import (
    ExpenseCreated,
    ExpenseDeleted,
    ExpenseRestored,
    ExpenseUpdated,
    make_event,
)
from settleup.app.models.expense import Expense, SplitMethod
from settleup.app.models.participant import ExpenseParticipant
from settleup.app.services import activity_service, validation_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense (active or deleted) or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundFailure(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )
    return expense


def _require_can_modify(user_id: int, expense: Expense) -> None:
    if not can_modify(user_id, expense):
        raise AuthorizationFailure(
            f"You are not involved in expense {expense.id}."
        )


def _involved_user_ids(expense: Expense) -> set[int]:
    return {expense.payer_id, *expense.participant_ids}


def _participates(user_id):
    return Expense.participants.any(ExpenseParticipant.user_id == user_id)


def _merge_participants(expense: Expense, proposed: list[dict]) -> None:
    """
    Updates the participant collection in place.

    Kept users have their share updated, dropped users are removed, new users
    are appended. Replacing the whole collection would INSERT the new rows
    before DELETEing the old ones and trip uq_expense_participants_expense_user.
    """
    proposed_shares = {p["user_id"]: p["share"] for p in proposed}

    for participant in list(expense.participants):
        if participant.user_id in proposed_shares:
            participant.share = proposed_shares.pop(participant.user_id)
        else:
            expense.participants.remove(participant)

    for p in proposed:
        if p["user_id"] in proposed_shares:
            expense.participants.append(
                ExpenseParticipant(user_id=p["user_id"], share=p["share"])
            )


def _shares_of(expense: Expense) -> dict[int, int]:
    return {p.user_id: p.share for p in expense.participants}


# ── Ledger read models ─────────────────────────────────────────────────────

def find_active_involving(user_id: int, session: Session) -> list[Expense]:
    """Non-deleted expenses where user_id is the payer or a participant."""
    stmt = (
        select(Expense)
        .where(
            Expense.deleted_at.is_(None),
            or_(Expense.payer_id == user_id, _participates(user_id)),
        )
        .order_by(Expense.id)
    )
    return list(session.execute(stmt).scalars().all())


def find_active_between(user_id: int, other_id: int, session: Session) -> list[Expense]:
    """Non-deleted expenses where one of the pair paid and the other participates."""
    stmt = (
        select(Expense)
        .where(
            Expense.deleted_at.is_(None),
            or_(
                and_(Expense.payer_id == user_id, _participates(other_id)),
                and_(Expense.payer_id == other_id, _participates(user_id)),
            ),
        )
        .order_by(Expense.id)
    )
    return list(session.execute(stmt).scalars().all())


# ── Public service functions ───────────────────────────────────────────────

def can_modify(user_id: int, expense: Expense) -> bool:
    """Creator, payer or participant."""
    return (
        user_id == expense.created_by_id
        or user_id == expense.payer_id
        or user_id in expense.participant_ids
    )


def create_expense(caller_id: int, data: dict, session: Session) -> Expense:
    """
    Records a new expense.

    Args:
        caller_id: The authenticated user (from flask.g). Becomes created_by.
        data:      Validated dict from CreateExpenseSchema.
                   Keys: title, amount (minor units), payer_id (or None for
                   the caller), split_method, participants [{user_id, share}].

    Raises:
        ValidationFailure (422) with every share-rule violation found.
    """
    payer_id = data.get("payer_id") or caller_id
    participants = data["participants"]

    validation_service.validate_expense(
        data["amount"], payer_id, participants, session,
    ).raise_for_violations()

    expense = Expense(
        title=data["title"].strip(),
        amount=data["amount"],
        payer_id=payer_id,
        split_method=data.get("split_method", SplitMethod.EQUAL),
        created_by_id=caller_id,
        participants=[
            ExpenseParticipant(user_id=p["user_id"], share=p["share"])
            for p in participants
        ],
    )
    session.add(expense)
    session.flush()

    logger.info(
        "Expense %s created by user %s (payer %s, amount %s, %d participants).",
        expense.id, caller_id, payer_id, expense.amount, len(participants),
    )
    activity_service.notify(
        session,
        make_event(
            caller_id,
            _involved_user_ids(expense),
            ExpenseCreated(
                expense_id=expense.id,
                title=expense.title,
                amount=expense.amount,
                payer_id=payer_id,
                participant_count=len(participants),
                split_method=expense.split_method.value,
            ),
        ),
    )
    return expense


def list_expenses(
        caller_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
) -> tuple[list[Expense], int]:
    """Non-deleted expenses the caller created, paid or participates in. Newest first."""
    condition = and_(
        Expense.deleted_at.is_(None),
        or_(
            Expense.created_by_id == caller_id,
            Expense.payer_id == caller_id,
            _participates(caller_id),
        ),
    )
    total = session.execute(
        select(func.count(Expense.id)).where(condition)
    ).scalar_one()
    expenses = session.execute(
        select(Expense)
        .where(condition)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(expenses), total


def get_expense(expense_id: int, caller_id: int, session: Session) -> Expense:
    """Returns the expense, deleted or not, if the caller is involved in it."""
    expense = _get_expense_or_404(expense_id, session)
    _require_can_modify(caller_id, expense)
    return expense


def edit_expense(
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Partial update. Whatever subset of fields is sent, the resulting
    (amount, participants) pair is re-validated with the payer held fixed
    before anything is written.

    Raises:
        NotFoundFailure (404), AuthorizationFailure (403),
        AppError(EXPENSE_DELETED, 422), AppError(EXPENSE_VERSION_CONFLICT, 409),
        ValidationFailure (422).
    """
    expense = _get_expense_or_404(expense_id, session)
    _require_can_modify(caller_id, expense)

    if expense.is_deleted:
        raise AppError(
            ErrorCode.EXPENSE_DELETED,
            "A deleted expense cannot be edited. Restore it first.",
            422,
        )

    expected_version = data.get("expected_version")
    if expected_version is not None and expected_version != expense.version:
        raise AppError(
            ErrorCode.EXPENSE_VERSION_CONFLICT,
            f"Expense {expense_id} has changed since version {expected_version}; "
            f"it is now at version {expense.version}.",
            409,
        )

    new_amount = data.get("amount", expense.amount)
    if "participants" in data:
        new_participants = data["participants"]
    else:
        new_participants = [
            {"user_id": p.user_id, "share": p.share} for p in expense.participants
        ]

    validation_service.validate_expense(
        new_amount, expense.payer_id, new_participants, session,
    ).raise_for_violations()

    changed: list[str] = []

    if "title" in data and data["title"].strip() != expense.title:
        expense.title = data["title"].strip()
        changed.append("title")

    if new_amount != expense.amount:
        expense.amount = new_amount
        changed.append("amount")

    if "split_method" in data and data["split_method"] != expense.split_method:
        expense.split_method = data["split_method"]
        changed.append("split_method")

    proposed_shares = {p["user_id"]: p["share"] for p in new_participants}
    if proposed_shares != _shares_of(expense):
        _merge_participants(expense, new_participants)
        changed.append("participants")

    if not changed:
        return expense

    # Always touches the expense row, so the version counter moves even when
    # only participant rows changed.
    expense.updated_at = datetime.now(timezone.utc)
    session.flush()

    logger.info(
        "Expense %s edited by user %s (%s); now version %s.",
        expense.id, caller_id, ", ".join(changed), expense.version,
    )
    activity_service.notify(
        session,
        make_event(
            caller_id,
            _involved_user_ids(expense),
            ExpenseUpdated(
                expense_id=expense.id,
                title=expense.title,
                amount=expense.amount,
                changed_fields=tuple(changed),
            ),
        ),
    )
    return expense


def delete_expense(
        expense_id: int,
        caller_id: int,
        session: Session,
        reason: str | None = None,
) -> Expense:
    """Soft-deletes the expense. Deleting an already-deleted expense changes nothing."""
    expense = _get_expense_or_404(expense_id, session)
    _require_can_modify(caller_id, expense)

    if expense.is_deleted:
        return expense

    expense.mark_deleted(
        by=caller_id,
        at=datetime.now(timezone.utc),
        reason=reason.strip() if reason else None,
    )
    session.flush()

    logger.info("Expense %s deleted by user %s.", expense.id, caller_id)
    activity_service.notify(
        session,
        make_event(
            caller_id,
            _involved_user_ids(expense),
            ExpenseDeleted(
                expense_id=expense.id,
                title=expense.title,
                amount=expense.amount,
                reason=expense.deleted_reason,
            ),
        ),
    )
    return expense


def restore_expense(expense_id: int, caller_id: int, session: Session) -> Expense:
    expense = _get_expense_or_404(expense_id, session)
    _require_can_modify(caller_id, expense)

    if not expense.is_deleted:
        raise AppError(
            ErrorCode.EXPENSE_NOT_DELETED,
            f"Expense {expense_id} is not deleted.",
            422,
        )

    expense.restore()
    expense.updated_at = datetime.now(timezone.utc)
    session.flush()

    logger.info("Expense %s restored by user %s.", expense.id, caller_id)
    activity_service.notify(
        session,
        make_event(
            caller_id,
            _involved_user_ids(expense),
            ExpenseRestored(
                expense_id=expense.id,
                title=expense.title,
                amount=expense.amount,
            ),
        ),
    )
    return expense
