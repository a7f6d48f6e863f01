"""
models/activity.py — Activity and ActivityTarget table definitions.

An Activity row is written once per delivered ActivityEvent (see
dispatcher.py). Each user who should see it gets an ActivityTarget row;
`read_at` is NULL until that user marks it read.

`payload` holds the JSON form of the kind's payload dataclass (events.py).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.events import ActivityKind, ActivityPayload, payload_from_dict
from settleup.app.extensions import db


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Activity(db.Model):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(primary_key=True)

    kind: Mapped[ActivityKind] = mapped_column(
        Enum(
            ActivityKind,
            name="activity_kind_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    # ON DELETE CASCADE: a user's activity history goes with the user.
    actor_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    actor: Mapped["User"] = relationship("User")  # noqa: F821

    targets: Mapped[list["ActivityTarget"]] = relationship(
        "ActivityTarget",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def typed_payload(self) -> ActivityPayload:
        return payload_from_dict(self.kind, self.payload)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Activity id={self.id} kind={self.kind} actor_id={self.actor_id}>"


class ActivityTarget(db.Model):
    __tablename__ = "activity_targets"

    __table_args__ = (
        UniqueConstraint("activity_id", "user_id", name="uq_activity_targets_activity_user"),
        Index("idx_activity_targets_unread", "user_id", "read_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    activity_id: Mapped[int] = mapped_column(
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # NULL = unread.
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    activity: Mapped[Activity] = relationship(
        Activity,
        back_populates="targets",
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
