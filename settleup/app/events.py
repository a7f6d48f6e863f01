"""
events.py — Ledger-affecting activity events.

Each activity kind has its own frozen payload dataclass, so the fields of
every event are known statically. Payloads are stored as JSON on the
Activity row and re-hydrated with payload_from_dict().

Events are produced by services via activity_service.notify() and delivered
asynchronously by the ActivityDispatcher (dispatcher.py).
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, fields
from typing import ClassVar, Union


class ActivityKind(str, enum.Enum):
    EXPENSE_CREATED    = "EXPENSE_CREATED"
    EXPENSE_UPDATED    = "EXPENSE_UPDATED"
    EXPENSE_DELETED    = "EXPENSE_DELETED"
    EXPENSE_RESTORED   = "EXPENSE_RESTORED"
    SETTLEMENT_CREATED = "SETTLEMENT_CREATED"
    FRIEND_ADDED       = "FRIEND_ADDED"


# ── Payload variants ───────────────────────────────────────────────────────
# Amounts are integer minor units, like everywhere else in the ledger.

@dataclass(frozen=True)
class ExpenseCreated:
    kind: ClassVar[ActivityKind] = ActivityKind.EXPENSE_CREATED

    expense_id: int
    title: str
    amount: int
    payer_id: int
    participant_count: int
    split_method: str


@dataclass(frozen=True)
class ExpenseUpdated:
    kind: ClassVar[ActivityKind] = ActivityKind.EXPENSE_UPDATED

    expense_id: int
    title: str
    amount: int
    changed_fields: tuple[str, ...]


@dataclass(frozen=True)
class ExpenseDeleted:
    kind: ClassVar[ActivityKind] = ActivityKind.EXPENSE_DELETED

    expense_id: int
    title: str
    amount: int
    reason: str | None = None


@dataclass(frozen=True)
class ExpenseRestored:
    kind: ClassVar[ActivityKind] = ActivityKind.EXPENSE_RESTORED

    expense_id: int
    title: str
    amount: int


@dataclass(frozen=True)
class SettlementCreated:
    kind: ClassVar[ActivityKind] = ActivityKind.SETTLEMENT_CREATED

    settlement_id: int
    from_user_id: int
    to_user_id: int
    amount: int
    note: str | None = None


@dataclass(frozen=True)
class FriendAdded:
    kind: ClassVar[ActivityKind] = ActivityKind.FRIEND_ADDED

    friendship_id: int
    friend_id: int
    nickname: str | None = None


ActivityPayload = Union[
    ExpenseCreated,
    ExpenseUpdated,
    ExpenseDeleted,
    ExpenseRestored,
    SettlementCreated,
    FriendAdded,
]

_PAYLOAD_TYPES: dict[ActivityKind, type] = {
    cls.kind: cls
    for cls in (
        ExpenseCreated,
        ExpenseUpdated,
        ExpenseDeleted,
        ExpenseRestored,
        SettlementCreated,
        FriendAdded,
    )
}


@dataclass(frozen=True)
class ActivityEvent:
    """One notification: who did it, who should see it, and what happened."""

    actor_id: int
    target_ids: tuple[int, ...]
    payload: ActivityPayload

    @property
    def kind(self) -> ActivityKind:
        return self.payload.kind


def make_event(actor_id: int, target_ids, payload: ActivityPayload) -> ActivityEvent:
    """Builds an event with de-duplicated, sorted target ids."""
    return ActivityEvent(
        actor_id=actor_id,
        target_ids=tuple(sorted(set(target_ids))),
        payload=payload,
    )


def payload_to_dict(payload: ActivityPayload) -> dict:
    data = asdict(payload)
    for key, value in data.items():
        if isinstance(value, tuple):
            data[key] = list(value)
    return data


def payload_from_dict(kind: ActivityKind | str, data: dict) -> ActivityPayload:
    """
    Re-hydrates a stored payload. Unknown keys are ignored so that older rows
    keep loading after a payload gains or loses a field.

    Raises:
        ValueError — kind is not a registered activity kind.
    """
    payload_cls = _PAYLOAD_TYPES[ActivityKind(kind)]
    known = {f.name for f in fields(payload_cls)}
    kwargs = {k: v for k, v in (data or {}).items() if k in known}
    if "changed_fields" in kwargs:
        kwargs["changed_fields"] = tuple(kwargs["changed_fields"])
    return payload_cls(**kwargs)
