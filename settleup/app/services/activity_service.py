"""
services/activity_service.py — Activity feed: recording and reading.

Producers call notify() inside their unit of work. The event is staged on
the session and only reaches the dispatcher queue once that session commits
(see dispatcher.py), so a failed request announces nothing.

    activity_service.notify(session, make_event(actor_id, targets, payload))

deliver() is the dispatcher's handler. It runs on the worker thread inside a
fresh app context and writes the Activity row plus one ActivityTarget per
recipient. Everything else here serves the feed endpoints.

Layer rules:
  - No request state. deliver() uses the app-scoped db.session because it
    runs outside any request.
  - Feed mutations flush only; routes commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from settleup.app.errors import AuthorizationFailure, ErrorCode, NotFoundFailure
from settleup.app.events import ActivityEvent, ActivityKind, payload_to_dict
from settleup.app.extensions import activity_dispatcher, db
from settleup.app.models.activity import Activity, ActivityTarget

logger = logging.getLogger(__name__)


# ── Write side ─────────────────────────────────────────────────────────────

def notify(session: Session, activity_event: ActivityEvent) -> None:
    """Stages an event for delivery after the session's next commit."""
    activity_dispatcher.stage(session, activity_event)


def record_activity(activity_event: ActivityEvent, session: Session) -> Activity:
    activity = Activity(
        kind=activity_event.kind,
        actor_id=activity_event.actor_id,
        payload=payload_to_dict(activity_event.payload),
    )
    activity.targets = [
        ActivityTarget(user_id=user_id) for user_id in activity_event.target_ids
    ]
    session.add(activity)
    session.flush()
    return activity


def deliver(activity_event: ActivityEvent) -> None:
    """Dispatcher handler: persists one event in its own transaction."""
    activity = record_activity(activity_event, db.session)
    db.session.commit()
    logger.debug(
        "Recorded %s activity %s for %d target(s).",
        activity_event.kind.value,
        activity.id,
        len(activity_event.target_ids),
    )


# ── Read side ──────────────────────────────────────────────────────────────

def get_feed(
        user_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
        kind: ActivityKind | None = None,
        unread_only: bool = False,
) -> tuple[list[tuple[Activity, datetime | None]], int]:
    """
    Returns ([(activity, read_at), ...], total) for activities targeting
    user_id, newest first.
    """
    conditions = [ActivityTarget.user_id == user_id]
    if kind is not None:
        conditions.append(Activity.kind == kind)
    if unread_only:
        conditions.append(ActivityTarget.read_at.is_(None))

    base = (
        select(Activity, ActivityTarget.read_at)
        .join(ActivityTarget, ActivityTarget.activity_id == Activity.id)
        .where(*conditions)
    )

    total = session.execute(
        select(func.count()).select_from(base.subquery())
    ).scalar_one()

    rows = session.execute(
        base.order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return [(row[0], row[1]) for row in rows], total


def count_unread(user_id: int, session: Session) -> int:
    return session.execute(
        select(func.count(ActivityTarget.id)).where(
            ActivityTarget.user_id == user_id,
            ActivityTarget.read_at.is_(None),
        )
    ).scalar_one()


def mark_read(activity_id: int, user_id: int, session: Session) -> ActivityTarget:
    """
    Raises:
      NotFoundFailure(ACTIVITY_NOT_FOUND)  — no such activity
      AuthorizationFailure(FORBIDDEN)      — caller is not one of its targets
    """
    activity = session.get(Activity, activity_id)
    if activity is None:
        raise NotFoundFailure(
            ErrorCode.ACTIVITY_NOT_FOUND,
            f"Activity {activity_id} does not exist.",
        )

    target = session.execute(
        select(ActivityTarget).where(
            ActivityTarget.activity_id == activity_id,
            ActivityTarget.user_id == user_id,
        )
    ).scalar_one_or_none()
    if target is None:
        raise AuthorizationFailure("You are not a recipient of this activity.")

    if target.read_at is None:
        target.read_at = datetime.now(timezone.utc)
        session.flush()
    return target


def mark_all_read(user_id: int, session: Session) -> int:
    """Returns the number of activities that were unread."""
    result = session.execute(
        update(ActivityTarget)
        .where(
            ActivityTarget.user_id == user_id,
            ActivityTarget.read_at.is_(None),
        )
        .values(read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    session.flush()
    return result.rowcount
