"""
models/settlement.py — Settlement table definition.

No business logic. No imports from services or routes.

Key design points:
  - Settlements are immutable once written: there is no update or delete path.
  - `amount` is an integer count of minor units; at least 1.
  - CHECK(from_user_id <> to_user_id) is enforced here AND in
    validation_service.py (SAME_USER_SETTLEMENT). The DB constraint is the
    last line of defense.
  - Settlements reference no expense. They adjust balances on their own.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount >= 1", name="ck_settlements_amount_positive"),
        CheckConstraint(
            "from_user_id <> to_user_id",
            name="ck_settlements_no_self_settlement",
        ),
        Index("idx_settlements_pair", "from_user_id", "to_user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    from_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    to_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Over-payment is valid: it is reported as a warning, never blocked.
    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
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

    # ── Relationships ──────────────────────────────────────────────────────

    from_user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[from_user_id],
    )

    to_user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[to_user_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id} "
            f"from={self.from_user_id} "
            f"to={self.to_user_id} "
            f"amount={self.amount}>"
        )
