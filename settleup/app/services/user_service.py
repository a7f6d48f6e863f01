"""
services/user_service.py — User directory lookups.

Every other service resolves user ids through these functions, so the
lower-casing rule for emails lives in exactly one place.

Layer rules:
  - No Flask imports.
  - Read-only: never adds or flushes.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import ErrorCode, NotFoundFailure
from settleup.app.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_id(user_id: int, session: Session) -> User | None:
    return session.get(User, user_id)


def find_by_email(email: str, session: Session) -> User | None:
    """Case-insensitive: 'Alice@Example.com' finds 'alice@example.com'."""
    return session.execute(
        select(User).where(User.email == normalize_email(email))
    ).scalar_one_or_none()


def find_existing_ids(user_ids: Iterable[int], session: Session) -> set[int]:
    """Returns the subset of user_ids that resolve to a user. One query."""
    wanted = set(user_ids)
    if not wanted:
        return set()
    stmt = select(User.id).where(User.id.in_(wanted))
    return set(session.execute(stmt).scalars().all())


def find_by_ids(user_ids: Iterable[int], session: Session) -> dict[int, User]:
    wanted = set(user_ids)
    if not wanted:
        return {}
    stmt = select(User).where(User.id.in_(wanted))
    return {user.id: user for user in session.execute(stmt).scalars().all()}


def get_user_or_404(user_id: int, session: Session) -> User:
    user = find_by_id(user_id, session)
    if user is None:
        raise NotFoundFailure(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
        )
    return user


def lookup_by_email(email: str, session: Session) -> User:
    """Directory lookup used by GET /users?email=. Raises USER_NOT_FOUND (404)."""
    user = find_by_email(email, session)
    if user is None:
        raise NotFoundFailure(
            ErrorCode.USER_NOT_FOUND,
            "No user is registered with that email address.",
            field="email",
        )
    return user
