"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration and credential validation
  - JWT access token creation (HS256)
  - Password hashing (bcrypt) and verification

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - current_app.config is used ONLY to read the JWT settings and bcrypt cost —
    the single Flask dependency in this service. JWT secrets must not be
    hardcoded or read from env directly in a way that bypasses Flask config
    validation.

Token design:
  - Access token only: JWT, HS256, TTL from JWT_ACCESS_TOKEN_EXPIRES,
    sub = user_id (str). There are no refresh tokens; clients log in again.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.user import User
from settleup.app.services import user_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _create_access_token(user_id: int) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user_id as str), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expiry,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _duplicate_email(email: str) -> AppError:
    return AppError(
        ErrorCode.DUPLICATE_EMAIL,
        f"The email address '{email}' is already registered.",
        409,
        field="email",
    )


def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. No business logic."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        name: str,
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Creates a new user account and issues an access token.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered (any casing)

    Returns: {"user": {...}, "access_token": "..."}
    """
    email = user_service.normalize_email(email)
    if user_service.find_by_email(email, session) is not None:
        raise _duplicate_email(email)

    user = User(
        name=name.strip(),
        email=email,
        password_hash=_hash_password(password),
    )
    session.add(user)
    try:
        session.flush()  # populate user.id before issuing the token
    except IntegrityError as exc:
        raise _duplicate_email(email) from exc

    logger.info("Registered user %s.", user.id)
    return {
        "user": build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def login_user(
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Validates credentials and issues a new access token.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — email not found or password wrong.
      Uses the same error for both to avoid account enumeration.

    Returns: {"user": {...}, "access_token": "..."}
    """
    user = user_service.find_by_email(email, session)

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
            401,
        )

    return {
        "user": build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      NotFoundFailure(USER_NOT_FOUND, 404) — user_id from the JWT no longer
      exists in the DB.
    """
    return build_user_dict(user_service.get_user_or_404(user_id, session))
