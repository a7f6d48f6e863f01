"""
services/validation_service.py — Share and settlement validators.

Both validators collect EVERY violation before reporting, so a client fixing
a bad request sees all of its problems at once:

    result = validate_expense(amount, payer_id, participants, session)
    result.raise_for_violations()      # ValidationFailure (422) if any

The rule checks themselves (check_expense, check_settlement) are pure
functions of the request values plus the set of user ids known to exist;
validate_* only adds the single directory lookup.

Rules (codes from errors.ErrorCode):
  Expense
    NO_PARTICIPANTS        — empty participant list
    PAYER_NOT_FOUND        — payer id does not resolve
    DUPLICATE_PARTICIPANT  — a user id appears more than once
    PARTICIPANT_NOT_FOUND  — every unresolved participant id, in one violation
    NEGATIVE_SHARE         — any share < 0
    SHARE_SUM_MISMATCH     — |sum(shares) - amount| > SHARE_SUM_TOLERANCE
  Settlement
    SAME_USER_SETTLEMENT   — from == to
    NON_POSITIVE_AMOUNT    — amount < 1 minor unit
    SETTLEMENT_USER_NOT_FOUND

Layer rules:
  - No Flask imports. Never writes.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from settleup.app.errors import ErrorCode, ValidationFailure, Violation
from settleup.app.services import user_service

# Shares may miss the total by one minor unit (equal splits of odd amounts).
SHARE_SUM_TOLERANCE = 1


@dataclass
class ValidationResult:
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def codes(self) -> list[str]:
        return [v.code for v in self.violations]

    def add(self, code: str, field_name: str, message: str, **context) -> None:
        self.violations.append(Violation(code, field_name, message, context))

    def raise_for_violations(self, message: str | None = None) -> None:
        if self.violations:
            if message is None:
                raise ValidationFailure(self.violations)
            raise ValidationFailure(self.violations, message)


# ── Pure rule checks ───────────────────────────────────────────────────────

def check_expense(
        total_amount: int,
        payer_id: int,
        participants: list[dict],
        existing_user_ids: set[int],
) -> ValidationResult:
    result = ValidationResult()
    user_ids = [p["user_id"] for p in participants]

    if not participants:
        result.add(
            ErrorCode.NO_PARTICIPANTS,
            "participants",
            "An expense needs at least one participant.",
        )

    if payer_id not in existing_user_ids:
        result.add(
            ErrorCode.PAYER_NOT_FOUND,
            "payer_id",
            f"Payer {payer_id} does not exist.",
            user_id=payer_id,
        )

    duplicates = sorted(uid for uid, count in Counter(user_ids).items() if count > 1)
    if duplicates:
        result.add(
            ErrorCode.DUPLICATE_PARTICIPANT,
            "participants",
            "Each participant may appear only once.",
            user_ids=duplicates,
        )

    missing = sorted(set(user_ids) - existing_user_ids)
    if missing:
        result.add(
            ErrorCode.PARTICIPANT_NOT_FOUND,
            "participants",
            f"{len(missing)} participant(s) do not exist.",
            user_ids=missing,
        )

    negative = sorted({p["user_id"] for p in participants if p["share"] < 0})
    if negative:
        result.add(
            ErrorCode.NEGATIVE_SHARE,
            "participants",
            "Shares must not be negative.",
            user_ids=negative,
        )

    if participants:
        share_sum = sum(p["share"] for p in participants)
        difference = share_sum - total_amount
        if abs(difference) > SHARE_SUM_TOLERANCE:
            result.add(
                ErrorCode.SHARE_SUM_MISMATCH,
                "participants",
                f"Shares add up to {share_sum}, expected {total_amount}.",
                expected=total_amount,
                actual=share_sum,
                difference=difference,
            )

    return result


def check_settlement(
        from_user_id: int,
        to_user_id: int,
        amount: int,
        existing_user_ids: set[int],
) -> ValidationResult:
    result = ValidationResult()

    if from_user_id == to_user_id:
        result.add(
            ErrorCode.SAME_USER_SETTLEMENT,
            "to_user_id",
            "A settlement cannot be made to yourself.",
        )

    if amount < 1:
        result.add(
            ErrorCode.NON_POSITIVE_AMOUNT,
            "amount",
            "Settlement amount must be at least 0.01.",
            amount=amount,
        )

    missing = sorted({from_user_id, to_user_id} - existing_user_ids)
    if missing:
        result.add(
            ErrorCode.SETTLEMENT_USER_NOT_FOUND,
            "to_user_id",
            "Settlement users must exist.",
            user_ids=missing,
        )

    return result


# ── Session-backed entry points ────────────────────────────────────────────

def _referenced_ids(*groups: Iterable[int]) -> set[int]:
    ids: set[int] = set()
    for group in groups:
        ids.update(group)
    return ids


def validate_expense(
        total_amount: int,
        payer_id: int,
        participants: list[dict],
        session: Session,
) -> ValidationResult:
    referenced = _referenced_ids([payer_id], (p["user_id"] for p in participants))
    existing = user_service.find_existing_ids(referenced, session)
    return check_expense(total_amount, payer_id, participants, existing)


def validate_settlement(
        from_user_id: int,
        to_user_id: int,
        amount: int,
        session: Session,
) -> ValidationResult:
    existing = user_service.find_existing_ids({from_user_id, to_user_id}, session)
    return check_settlement(from_user_id, to_user_id, amount, existing)
