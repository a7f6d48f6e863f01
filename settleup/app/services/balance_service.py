"""
services/balance_service.py — Balance ledger engine.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
The formulas must not be reimplemented elsewhere in the codebase.

Balances are never stored. Every call folds over the committed expense and
settlement records, so recomputing twice over the same records gives the same
answer, and the order of the records does not matter.

Sign convention (from the point of view of `user_id`):
    positive  → the counterparty owes user_id       (status "owes_you")
    negative  → user_id owes the counterparty       (status "you_owe")
    zero      → nothing outstanding                 (status "settled")

Per expense, for user U:
  - U paid:                   others owe U  (amount − U's own share)
  - U participates, V paid:   U owes V      U's share
  - U paid and participates:  only the payer branch applies

Pairwise U vs V only counts expenses where one of them paid and the other
participates. Two co-participants of a third party's expense have no direct
debt between them, although each one's aggregate reflects the expense.
The pairwise detail lists every such expense, zero shares included, and every
settlement between the two, newest first.

Settlements are applied after expenses and unconditionally: a settlement
from U to V of `a` lowers U's total_owing and V's total_owed by `a` and moves
pairwise(U, V) up by `a`. Over-payment flips the sign.

Layer rules:
  - No Flask imports. Never writes.
  - The fold functions take plain records (ORM rows or anything with the same
    attributes) and are unit-testable without a database.
"""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.money import to_major_units
from settleup.app.services import expense_service, settlement_service, user_service, validation_service


class BalanceStatus(str, enum.Enum):
    OWES_YOU = "owes_you"
    YOU_OWE  = "you_owe"
    SETTLED  = "settled"


def classify(balance: int) -> BalanceStatus:
    if balance > 0:
        return BalanceStatus.OWES_YOU
    if balance < 0:
        return BalanceStatus.YOU_OWE
    return BalanceStatus.SETTLED


# ── Result types ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CounterpartyBalance:
    counterparty_id: int
    balance: int

    @property
    def status(self) -> BalanceStatus:
        return classify(self.balance)


@dataclass(frozen=True)
class AggregateBalance:
    user_id: int
    total_owed: int
    total_owing: int
    per_counterparty: list[CounterpartyBalance] = field(default_factory=list)

    @property
    def net_balance(self) -> int:
        return self.total_owed - self.total_owing


@dataclass(frozen=True)
class ExpenseContribution:
    expense_id: int
    title: str
    amount: int
    payer_id: int
    your_share: int     # what user_id owes other_id from this expense
    their_share: int    # what other_id owes user_id from this expense
    created_at: datetime | None = None

    @property
    def effect(self) -> int:
        return self.their_share - self.your_share


@dataclass(frozen=True)
class SettlementContribution:
    settlement_id: int
    from_user_id: int
    to_user_id: int
    amount: int
    direction: str      # "you_paid" | "they_paid"
    note: str | None = None
    created_at: datetime | None = None

    @property
    def effect(self) -> int:
        return self.amount if self.direction == "you_paid" else -self.amount


@dataclass(frozen=True)
class PairwiseBalance:
    user_id: int
    other_id: int
    balance: int
    contributing_expenses: list[ExpenseContribution] = field(default_factory=list)
    contributing_settlements: list[SettlementContribution] = field(default_factory=list)

    @property
    def status(self) -> BalanceStatus:
        return classify(self.balance)


# ── Accumulator ────────────────────────────────────────────────────────────

class CounterpartyLedger:
    """Running per-counterparty balances for one user. Built fresh per call."""

    def __init__(self) -> None:
        self._balances: dict[int, int] = defaultdict(int)

    def credit(self, counterparty_id: int, amount: int) -> None:
        """The counterparty owes `amount` more."""
        self._balances[counterparty_id] += amount

    def debit(self, counterparty_id: int, amount: int) -> None:
        """The counterparty is owed `amount` more."""
        self._balances[counterparty_id] -= amount

    def balance_with(self, counterparty_id: int) -> int:
        return self._balances.get(counterparty_id, 0)

    def entries(self) -> list[CounterpartyBalance]:
        """Non-zero balances, largest first; ties broken by counterparty id."""
        entries = [
            CounterpartyBalance(counterparty_id=cid, balance=balance)
            for cid, balance in self._balances.items()
            if balance != 0
        ]
        entries.sort(key=lambda e: (-e.balance, e.counterparty_id))
        return entries


# ── Per-record contributions ───────────────────────────────────────────────

def _share_of(expense, user_id: int) -> int | None:
    for participant in expense.participants:
        if participant.user_id == user_id:
            return participant.share
    return None


def _is_deleted(expense) -> bool:
    return bool(getattr(expense, "is_deleted", False))


def owed_by_others(expense, user_id: int) -> int:
    """What the other participants owe user_id for this expense (0 unless user_id paid)."""
    if expense.payer_id != user_id:
        return 0
    return expense.amount - (_share_of(expense, user_id) or 0)


def owed_to_payer(expense, user_id: int) -> int:
    """What user_id owes the payer for this expense (0 if user_id paid)."""
    if expense.payer_id == user_id:
        return 0
    return _share_of(expense, user_id) or 0


def _between_pair(expense, user_id: int, other_id: int) -> bool:
    """One of the pair paid and the other is a listed participant, share 0 included."""
    if expense.payer_id == user_id:
        return _share_of(expense, other_id) is not None
    if expense.payer_id == other_id:
        return _share_of(expense, user_id) is not None
    return False


def _newest_first(row_id: int, created_at: datetime | None) -> tuple:
    # Rows without a timestamp sort last; equal timestamps fall back to id.
    return (created_at is not None, created_at or datetime.min, row_id)


def pairwise_effect(expense, user_id: int, other_id: int) -> int:
    """Signed contribution of one expense to pairwise(user_id, other_id)."""
    if expense.payer_id == user_id:
        return _share_of(expense, other_id) or 0
    if expense.payer_id == other_id:
        return -(_share_of(expense, user_id) or 0)
    return 0


# ── Folds ──────────────────────────────────────────────────────────────────

def fold_aggregate(
        user_id: int,
        expenses: Iterable,
        settlements: Iterable,
) -> AggregateBalance:
    total_owed = 0
    total_owing = 0
    ledger = CounterpartyLedger()

    for expense in expenses:
        if _is_deleted(expense):
            continue

        total_owed += owed_by_others(expense, user_id)
        total_owing += owed_to_payer(expense, user_id)

        if expense.payer_id == user_id:
            for participant in expense.participants:
                if participant.user_id != user_id:
                    ledger.credit(participant.user_id, participant.share)
        else:
            own_share = _share_of(expense, user_id)
            if own_share is not None:
                ledger.debit(expense.payer_id, own_share)

    for settlement in settlements:
        if settlement.from_user_id == user_id:
            total_owing -= settlement.amount
            ledger.credit(settlement.to_user_id, settlement.amount)
        elif settlement.to_user_id == user_id:
            total_owed -= settlement.amount
            ledger.debit(settlement.from_user_id, settlement.amount)

    return AggregateBalance(
        user_id=user_id,
        total_owed=total_owed,
        total_owing=total_owing,
        per_counterparty=ledger.entries(),
    )


def fold_pairwise(
        user_id: int,
        other_id: int,
        expenses: Iterable,
        settlements: Iterable,
) -> PairwiseBalance:
    balance = 0
    expense_rows: list[ExpenseContribution] = []
    settlement_rows: list[SettlementContribution] = []

    for expense in expenses:
        if _is_deleted(expense):
            continue
        if not _between_pair(expense, user_id, other_id):
            continue
        effect = pairwise_effect(expense, user_id, other_id)
        balance += effect
        expense_rows.append(ExpenseContribution(
            expense_id=expense.id,
            title=expense.title,
            amount=expense.amount,
            payer_id=expense.payer_id,
            your_share=-effect if effect < 0 else 0,
            their_share=effect if effect > 0 else 0,
            created_at=getattr(expense, "created_at", None),
        ))

    for settlement in settlements:
        pair = (settlement.from_user_id, settlement.to_user_id)
        if pair == (user_id, other_id):
            direction = "you_paid"
        elif pair == (other_id, user_id):
            direction = "they_paid"
        else:
            continue
        row = SettlementContribution(
            settlement_id=settlement.id,
            from_user_id=settlement.from_user_id,
            to_user_id=settlement.to_user_id,
            amount=settlement.amount,
            direction=direction,
            note=getattr(settlement, "note", None),
            created_at=getattr(settlement, "created_at", None),
        )
        balance += row.effect
        settlement_rows.append(row)

    expense_rows.sort(key=lambda r: _newest_first(r.expense_id, r.created_at), reverse=True)
    settlement_rows.sort(key=lambda r: _newest_first(r.settlement_id, r.created_at), reverse=True)

    return PairwiseBalance(
        user_id=user_id,
        other_id=other_id,
        balance=balance,
        contributing_expenses=expense_rows,
        contributing_settlements=settlement_rows,
    )


# ── Session-backed entry points ────────────────────────────────────────────

def compute_aggregate_balance(user_id: int, session: Session) -> AggregateBalance:
    return fold_aggregate(
        user_id,
        expense_service.find_active_involving(user_id, session),
        settlement_service.find_involving(user_id, session),
    )


def compute_pairwise_balance(user_id: int, other_id: int, session: Session) -> PairwiseBalance:
    return fold_pairwise(
        user_id,
        other_id,
        expense_service.find_active_between(user_id, other_id, session),
        settlement_service.find_between(user_id, other_id, session),
    )


def validate_expense_input(
        amount: int,
        payer_id: int,
        participants: list[dict],
        session: Session,
) -> validation_service.ValidationResult:
    """Pre-flight check for a proposed expense. Same rules as expense creation."""
    return validation_service.validate_expense(amount, payer_id, participants, session)


# ── Presentation ───────────────────────────────────────────────────────────
# Amounts keep their integer minor-unit value; *_display carries the
# major-unit Decimal (serialised as a string by the app's JSON provider).

def _money(key: str, minor: int) -> dict:
    return {key: minor, f"{key}_display": to_major_units(minor)}


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _status_message(balance: int) -> str:
    if balance > 0:
        return f"They owe you {to_major_units(balance)}"
    if balance < 0:
        return f"You owe them {to_major_units(-balance)}"
    return "All settled up"


def get_aggregate_response(user_id: int, session: Session) -> dict:
    """compute_aggregate_balance() enriched with counterparty names and nicknames."""
    from settleup.app.services import friend_service  # local import to avoid circular dep

    aggregate = compute_aggregate_balance(user_id, session)
    counterparty_ids = [e.counterparty_id for e in aggregate.per_counterparty]
    users = user_service.find_by_ids(counterparty_ids, session)
    nicknames = friend_service.nicknames_for(user_id, counterparty_ids, session)

    breakdown = []
    for entry in aggregate.per_counterparty:
        user = users.get(entry.counterparty_id)
        breakdown.append({
            "user": {
                "id": entry.counterparty_id,
                "name": user.name if user else None,
                "email": user.email if user else None,
                "nickname": nicknames.get(entry.counterparty_id),
            },
            **_money("balance", entry.balance),
            "status": entry.status.value,
        })

    return {
        **_money("total_owed", aggregate.total_owed),
        **_money("total_owing", aggregate.total_owing),
        **_money("net_balance", aggregate.net_balance),
        "per_counterparty": breakdown,
    }


def get_pairwise_response(user_id: int, other_id: int, session: Session) -> dict:
    """
    compute_pairwise_balance() with its contributing records.

    Raises:
      AppError(SELF_BALANCE, 422)       — other_id is the caller
      NotFoundFailure(USER_NOT_FOUND)   — other_id does not resolve
    """
    from settleup.app.services import friend_service  # local import to avoid circular dep

    if user_id == other_id:
        raise AppError(
            ErrorCode.SELF_BALANCE,
            "You cannot compute a balance with yourself.",
            422,
        )
    other = user_service.get_user_or_404(other_id, session)
    pairwise = compute_pairwise_balance(user_id, other_id, session)
    nickname = friend_service.nicknames_for(user_id, [other_id], session).get(other_id)

    return {
        "user": {
            "id": other.id,
            "name": other.name,
            "email": other.email,
            "nickname": nickname,
        },
        **_money("balance", pairwise.balance),
        "status": pairwise.status.value,
        "message": _status_message(pairwise.balance),
        "expenses": [
            {
                "id": row.expense_id,
                "title": row.title,
                **_money("amount", row.amount),
                "payer_id": row.payer_id,
                **_money("your_share", row.your_share),
                **_money("their_share", row.their_share),
                "created_at": _isoformat(row.created_at),
            }
            for row in pairwise.contributing_expenses
        ],
        "settlements": [
            {
                "id": row.settlement_id,
                "from_user_id": row.from_user_id,
                "to_user_id": row.to_user_id,
                **_money("amount", row.amount),
                "direction": row.direction,
                "note": row.note,
                "created_at": _isoformat(row.created_at),
            }
            for row in pairwise.contributing_settlements
        ],
    }
