"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the SettleUp API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 (unauthenticated) and 403 (unauthorized) are never conflated.

Taxonomy:
  ValidationFailure     (422) — one or more named rule violations, collected
  NotFoundFailure       (404) — a referenced record does not resolve
  AuthorizationFailure  (403) — the actor may not touch the record
  AppError              (any) — everything else (schema 400, conflicts 409, auth 401)
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Any


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


@dataclass(frozen=True)
class Violation:
    """One broken rule inside a ValidationFailure."""

    code: str
    field: str
    message: str
    context: dict[str, Any] = dc_field(default_factory=dict)

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "field":   self.field,
            "message": self.message,
        }
        payload.update(self.context)
        return payload


class ValidationFailure(AppError):
    """
    Raised with every violation found in a single request, never just the first.
    Rendered as {"error": {"code": "VALIDATION_FAILED", ..., "details": [...]}}.
    """

    def __init__(
            self,
            violations: list[Violation],
            message: str = "The request contains invalid data.",
    ) -> None:
        super().__init__(ErrorCode.VALIDATION_FAILED, message, 422)
        self.violations = list(violations)

    @property
    def codes(self) -> list[str]:
        return [v.code for v in self.violations]

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["error"]["details"] = [v.to_dict() for v in self.violations]
        return body


class NotFoundFailure(AppError):

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 404, field=field)


class AuthorizationFailure(AppError):

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.FORBIDDEN, message, 403)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_SPLIT_METHOD       = "INVALID_SPLIT_METHOD"
    INVALID_ACTIVITY_KIND      = "INVALID_ACTIVITY_KIND"

    # ── Validation envelope (422) ──────────────────────────────────────────
    VALIDATION_FAILED          = "VALIDATION_FAILED"

    # Violation codes carried in ValidationFailure.details
    PAYER_NOT_FOUND            = "PAYER_NOT_FOUND"
    PARTICIPANT_NOT_FOUND      = "PARTICIPANT_NOT_FOUND"
    DUPLICATE_PARTICIPANT      = "DUPLICATE_PARTICIPANT"
    NEGATIVE_SHARE             = "NEGATIVE_SHARE"
    SHARE_SUM_MISMATCH         = "SHARE_SUM_MISMATCH"
    NO_PARTICIPANTS            = "NO_PARTICIPANTS"
    SAME_USER_SETTLEMENT       = "SAME_USER_SETTLEMENT"
    NON_POSITIVE_AMOUNT        = "NON_POSITIVE_AMOUNT"
    SETTLEMENT_USER_NOT_FOUND  = "SETTLEMENT_USER_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    EXPENSE_DELETED            = "EXPENSE_DELETED"
    EXPENSE_NOT_DELETED        = "EXPENSE_NOT_DELETED"
    SELF_BALANCE               = "SELF_BALANCE"
    SELF_FRIEND                = "SELF_FRIEND"
    OUTSTANDING_BALANCE        = "OUTSTANDING_BALANCE"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_FRIENDS            = "ALREADY_FRIENDS"
    EXPENSE_VERSION_CONFLICT   = "EXPENSE_VERSION_CONFLICT"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    SETTLEMENT_NOT_FOUND       = "SETTLEMENT_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"
    ACTIVITY_NOT_FOUND         = "ACTIVITY_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Settlement amount exceeds what the payer currently owes the recipient.
    # Still recorded: advance and over-payment are valid.
    OVERPAYMENT = "OVERPAYMENT"
