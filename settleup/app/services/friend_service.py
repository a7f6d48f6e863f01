"""
services/friend_service.py — Contact directory.

A friendship is the caller's own contact entry for another user (one row per
direction). It carries a nickname and nothing else; balances between the two
users exist whether or not they are friends.

Rules enforced here:
  USER_NOT_FOUND (404)       — no user with that email
  SELF_FRIEND (422)          — cannot add yourself
  ALREADY_FRIENDS (409)      — entry already exists
  FRIEND_NOT_FOUND (404)     — entry does not exist OR belongs to someone else
  OUTSTANDING_BALANCE (422)  — cannot remove a friend while money is owed
                               either way

Layer rules:
  - No Flask imports.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode, NotFoundFailure
from settleup.app.events import FriendAdded, make_event
from settleup.app.models.friendship import Friendship
from settleup.app.money import to_major_units
from settleup.app.services import activity_service, balance_service, user_service

logger = logging.getLogger(__name__)


def _get_friendship_or_404(friendship_id: int, user_id: int, session: Session) -> Friendship:
    """Another user's entry is reported as missing, not forbidden."""
    friendship = session.get(Friendship, friendship_id)
    if friendship is None or friendship.user_id != user_id:
        raise NotFoundFailure(
            ErrorCode.FRIEND_NOT_FOUND,
            f"Friend {friendship_id} does not exist.",
        )
    return friendship


def add_friend(
        user_id: int,
        email: str,
        session: Session,
        nickname: str | None = None,
) -> Friendship:
    friend = user_service.find_by_email(email, session)
    if friend is None:
        raise NotFoundFailure(
            ErrorCode.USER_NOT_FOUND,
            "No user is registered with that email address.",
            field="email",
        )

    if friend.id == user_id:
        raise AppError(
            ErrorCode.SELF_FRIEND,
            "You cannot add yourself as a friend.",
            422,
            field="email",
        )

    existing = session.execute(
        select(Friendship).where(
            Friendship.user_id == user_id,
            Friendship.friend_id == friend.id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise AppError(
            ErrorCode.ALREADY_FRIENDS,
            f"{friend.name} is already in your friends list.",
            409,
            field="email",
        )

    friendship = Friendship(
        user_id=user_id,
        friend_id=friend.id,
        nickname=(nickname.strip() if nickname else None) or friend.name,
    )
    session.add(friendship)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent add of the same friend.
        raise AppError(
            ErrorCode.ALREADY_FRIENDS,
            f"{friend.name} is already in your friends list.",
            409,
            field="email",
        ) from exc

    logger.info("User %s added user %s as a friend.", user_id, friend.id)
    activity_service.notify(
        session,
        make_event(
            user_id,
            (user_id, friend.id),
            FriendAdded(
                friendship_id=friendship.id,
                friend_id=friend.id,
                nickname=friendship.nickname,
            ),
        ),
    )
    return friendship


def list_friends(
        user_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
) -> tuple[list[tuple[Friendship, balance_service.PairwiseBalance]], int]:
    """Friends ordered by nickname, each with the current pairwise balance."""
    total = session.execute(
        select(func.count(Friendship.id)).where(Friendship.user_id == user_id)
    ).scalar_one()
    friendships = session.execute(
        select(Friendship)
        .where(Friendship.user_id == user_id)
        .order_by(Friendship.nickname, Friendship.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return [
        (f, balance_service.compute_pairwise_balance(user_id, f.friend_id, session))
        for f in friendships
    ], total


def get_friend(
        friendship_id: int,
        user_id: int,
        session: Session,
) -> tuple[Friendship, balance_service.PairwiseBalance]:
    friendship = _get_friendship_or_404(friendship_id, user_id, session)
    pairwise = balance_service.compute_pairwise_balance(user_id, friendship.friend_id, session)
    return friendship, pairwise


def update_nickname(
        friendship_id: int,
        user_id: int,
        nickname: str,
        session: Session,
) -> Friendship:
    friendship = _get_friendship_or_404(friendship_id, user_id, session)
    friendship.nickname = nickname.strip()
    friendship.updated_at = datetime.now(timezone.utc)
    session.flush()
    return friendship


def remove_friend(friendship_id: int, user_id: int, session: Session) -> None:
    friendship = _get_friendship_or_404(friendship_id, user_id, session)

    pairwise = balance_service.compute_pairwise_balance(user_id, friendship.friend_id, session)
    if pairwise.balance != 0:
        raise AppError(
            ErrorCode.OUTSTANDING_BALANCE,
            f"Settle the outstanding balance of {to_major_units(abs(pairwise.balance))} "
            f"before removing this friend.",
            422,
        )

    session.delete(friendship)
    session.flush()
    logger.info("User %s removed friend %s.", user_id, friendship.friend_id)


def nicknames_for(
        user_id: int,
        counterparty_ids: Iterable[int],
        session: Session,
) -> dict[int, str]:
    """{counterparty_id: nickname} for the counterparties that are the user's friends."""
    wanted = set(counterparty_ids)
    if not wanted:
        return {}
    rows = session.execute(
        select(Friendship.friend_id, Friendship.nickname).where(
            Friendship.user_id == user_id,
            Friendship.friend_id.in_(wanted),
        )
    ).all()
    return {friend_id: nickname for friend_id, nickname in rows if nickname}
