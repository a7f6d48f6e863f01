"""
models/friendship.py — Friendship table definition.

No business logic. No imports from services or routes.

A friendship row is one-directional: (user_id, friend_id) is the caller's
contact entry for friend_id, carrying the caller's own nickname for them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class Friendship(db.Model):
    __tablename__ = "friendships"

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendships_user_friend"),
        CheckConstraint("user_id <> friend_id", name="ck_friendships_no_self"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: contact entries are owned by the user.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    friend_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    nickname: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    friend: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[friend_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Friendship id={self.id} "
            f"user_id={self.user_id} "
            f"friend_id={self.friend_id}>"
        )
