"""
models/expense.py — Expense table definition and its deletion state.

No imports from services or routes.

Key design points:
  - `amount` is an integer count of minor units (BigInteger) — never Float.
  - Soft-delete state is exposed as a sum type, ExpenseDeletion = Active | Deleted.
    The three deletion columns are written only by mark_deleted() / restore();
    the CHECK constraints keep them consistent at the DB level as well.
  - `version` is the mapper's version_id_col: every UPDATE is issued with
    `WHERE version = <loaded version>` and a stale write raises StaleDataError.
  - `split_method` is display/edit metadata only. Balances are always computed
    from the stored participant shares.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Union

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class SplitMethod(str, enum.Enum):
    EQUAL   = "equal"
    UNEQUAL = "unequal"
    PERCENT = "percent"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'equal'), not names ('EQUAL')."""
    return [member.value for member in enum_cls]


# ── Deletion state ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Active:
    is_deleted: ClassVar[bool] = False


@dataclass(frozen=True)
class Deleted:
    is_deleted: ClassVar[bool] = True

    by: int
    at: datetime
    reason: str | None = None


ExpenseDeletion = Union[Active, Deleted]

ACTIVE = Active()


# ── Model ──────────────────────────────────────────────────────────────────

class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_expenses_title_nonempty",
        ),
        CheckConstraint(
            "(deleted_at IS NULL AND deleted_by_id IS NULL) "
            "OR (deleted_at IS NOT NULL AND deleted_by_id IS NOT NULL)",
            name="ck_expenses_deletion_consistent",
        ),
        CheckConstraint(
            "deleted_reason IS NULL OR deleted_at IS NOT NULL",
            name="ck_expenses_reason_requires_deletion",
        ),
        Index(
            "idx_expenses_active_payer",
            "payer_id",
            postgresql_where="deleted_at IS NULL",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # ON DELETE RESTRICT: cannot delete a user who has paid expenses.
    payer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    split_method: Mapped[SplitMethod] = mapped_column(
        Enum(
            SplitMethod,
            name="split_method_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SplitMethod.EQUAL,
        server_default=SplitMethod.EQUAL.value,
    )

    created_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Nullable; set on every successful edit.
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
    )

    deleted_reason: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="1",
    )

    __mapper_args__ = {"version_id_col": version}

    # ── Relationships ──────────────────────────────────────────────────────

    payer: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[payer_id],
    )

    created_by: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by_id],
    )

    # ON DELETE CASCADE: participant rows are owned by their expense.
    participants: Mapped[list["ExpenseParticipant"]] = relationship(  # noqa: F821
        "ExpenseParticipant",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ExpenseParticipant.id",
    )

    # ── Deletion state transitions ─────────────────────────────────────────

    @property
    def deletion(self) -> ExpenseDeletion:
        if self.deleted_at is None:
            return ACTIVE
        return Deleted(
            by=self.deleted_by_id,
            at=self.deleted_at,
            reason=self.deleted_reason,
        )

    @property
    def is_deleted(self) -> bool:
        """True if this expense has been soft-deleted."""
        return self.deletion.is_deleted

    def mark_deleted(self, by: int, at: datetime, reason: str | None = None) -> None:
        self.deleted_at     = at
        self.deleted_by_id  = by
        self.deleted_reason = reason

    def restore(self) -> None:
        self.deleted_at     = None
        self.deleted_by_id  = None
        self.deleted_reason = None

    # ── Read helpers ───────────────────────────────────────────────────────

    @property
    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"payer_id={self.payer_id} "
            f"amount={self.amount} "
            f"version={self.version} "
            f"deleted={self.is_deleted}>"
        )
