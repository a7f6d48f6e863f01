"""
services/settlement_service.py — Settlement record store (append-only).

Rules enforced here:
  - SAME_USER_SETTLEMENT, NON_POSITIVE_AMOUNT, SETTLEMENT_USER_NOT_FOUND via
    validation_service (collected into one ValidationFailure, 422).
  - FORBIDDEN (403) — only the two parties may read a settlement.

Notes on over-payment:
  If the amount exceeds what the payer currently owes the recipient pairwise,
  the settlement is still recorded (advance payment is valid) and a warning
  is returned alongside the 201:
    {"data": {...}, "warnings": [{"code": "OVERPAYMENT", ...}]}
  The pairwise balance then flips sign.

Settlements have no update or delete path.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from settleup.app.errors import AuthorizationFailure, ErrorCode, NotFoundFailure, WarningCode
from settleup.app.events import SettlementCreated, make_event
from settleup.app.models.settlement import Settlement
from settleup.app.money import to_major_units
from settleup.app.services import activity_service, validation_service

logger = logging.getLogger(__name__)


def _between(user_id: int, other_id: int):
    return or_(
        and_(Settlement.from_user_id == user_id, Settlement.to_user_id == other_id),
        and_(Settlement.from_user_id == other_id, Settlement.to_user_id == user_id),
    )


def _involving(user_id: int):
    return or_(Settlement.from_user_id == user_id, Settlement.to_user_id == user_id)


def _overpayment_warning(amount: int, outstanding: int) -> dict:
    return {
        "code": WarningCode.OVERPAYMENT,
        "message": (
            f"Payment of {to_major_units(amount)} exceeds the "
            f"{to_major_units(outstanding)} currently owed. "
            f"The settlement was recorded; the recipient now owes the difference."
        ),
        "outstanding": outstanding,
    }


# ── Ledger read models ─────────────────────────────────────────────────────

def find_involving(user_id: int, session: Session) -> list[Settlement]:
    stmt = select(Settlement).where(_involving(user_id)).order_by(Settlement.id)
    return list(session.execute(stmt).scalars().all())


def find_between(user_id: int, other_id: int, session: Session) -> list[Settlement]:
    stmt = select(Settlement).where(_between(user_id, other_id)).order_by(Settlement.id)
    return list(session.execute(stmt).scalars().all())


# ── Public service functions ───────────────────────────────────────────────

def create_settlement(
        from_user_id: int,
        data: dict,
        session: Session,
) -> tuple[Settlement, list[dict]]:
    """
    Records a payment from from_user_id (the caller) to data["to_user_id"].

    Args:
        from_user_id: The authenticated user making the payment (from flask.g).
        data:         Validated dict from CreateSettlementSchema.
                      Keys: to_user_id (int), amount (minor units), note.

    Returns:
        (Settlement, warnings) where warnings is a list of warning dicts.
    """
    from settleup.app.services import balance_service  # local import to avoid circular dep

    to_user_id: int = data["to_user_id"]
    amount: int = data["amount"]

    validation_service.validate_settlement(
        from_user_id, to_user_id, amount, session,
    ).raise_for_violations()

    # Positive pairwise balance means the counterparty owes the first user.
    outstanding = max(
        -balance_service.compute_pairwise_balance(from_user_id, to_user_id, session).balance,
        0,
    )

    warnings: list[dict] = []
    if amount > outstanding:
        warnings.append(_overpayment_warning(amount, outstanding))
        logger.warning(
            "Settlement from user %s to user %s overpays by %s minor units.",
            from_user_id, to_user_id, amount - outstanding,
        )

    note = data.get("note")
    settlement = Settlement(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=amount,
        note=note.strip() if note else None,
        created_by_id=from_user_id,
    )
    session.add(settlement)
    session.flush()

    logger.info(
        "Settlement %s recorded: user %s paid user %s %s minor units.",
        settlement.id, from_user_id, to_user_id, amount,
    )
    activity_service.notify(
        session,
        make_event(
            from_user_id,
            (from_user_id, to_user_id),
            SettlementCreated(
                settlement_id=settlement.id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                amount=amount,
                note=settlement.note,
            ),
        ),
    )
    return settlement, warnings


def list_settlements(
        caller_id: int,
        session: Session,
        with_user_id: int | None = None,
        page: int = 1,
        limit: int = 20,
) -> tuple[list[Settlement], int]:
    """Settlements the caller sent or received, optionally with one counterparty. Newest first."""
    condition = (
        _involving(caller_id) if with_user_id is None
        else _between(caller_id, with_user_id)
    )
    total = session.execute(
        select(func.count(Settlement.id)).where(condition)
    ).scalar_one()
    settlements = session.execute(
        select(Settlement)
        .where(condition)
        .order_by(Settlement.created_at.desc(), Settlement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(settlements), total


def get_settlement(settlement_id: int, caller_id: int, session: Session) -> Settlement:
    settlement = session.get(Settlement, settlement_id)
    if settlement is None:
        raise NotFoundFailure(
            ErrorCode.SETTLEMENT_NOT_FOUND,
            f"Settlement {settlement_id} does not exist.",
        )
    if caller_id not in (settlement.from_user_id, settlement.to_user_id):
        raise AuthorizationFailure("You are not a party to this settlement.")
    return settlement
