"""
middleware/auth_middleware.py — JWT authentication decorator.

@require_auth reads "Authorization: Bearer <token>", verifies the HS256
signature and expiry, and puts the user id (int) on flask.g.user_id.

Authentication only (401). Whether the caller may touch a given expense,
settlement, friend entry or activity is decided in the services (403/404),
which receive the user id as a plain int and never see the token.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, bad signature, or bad `sub`
  TOKEN_EXPIRED  (401) — signature fine, exp in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from settleup.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Usage:
        @expenses_bp.route("", methods=["GET"])
        @require_auth
        def list_expenses():
            user_id = g.user_id  # always an int when this runs
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _token_error(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise _token_error(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise _token_error(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )
    return token.strip()


def _decode(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise _token_error(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, missing claims.
        raise _token_error(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )


def _authenticate_request() -> None:
    """
    Sets flask.g.user_id or raises AppError. Separate from the decorator so
    tests can call it inside a request context without a view function.
    """
    payload = _decode(_bearer_token())

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _token_error(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
        )

    g.user_id = user_id
