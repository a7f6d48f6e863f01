"""
models/participant.py — ExpenseParticipant table definition.

No business logic. No imports from services or routes.

Key design points:
  - `share` is an integer count of minor units (BigInteger) — never Float.
  - expense_id is ON DELETE CASCADE — participant rows are owned by their expense.
  - user_id is ON DELETE RESTRICT — cannot delete a user who owes a share.
  - UNIQUE(expense_id, user_id) backs the DUPLICATE_PARTICIPANT rule.

sum(share) == expense.amount (within one minor unit) is enforced in
validation_service.py before any write, not here.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class ExpenseParticipant(db.Model):
    __tablename__ = "expense_participants"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_participants_expense_user"),
        CheckConstraint("share >= 0", name="ck_expense_participants_share_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    share: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="participants",
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseParticipant expense_id={self.expense_id} "
            f"user_id={self.user_id} "
            f"share={self.share}>"
        )
