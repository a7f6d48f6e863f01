"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against an in-memory SQLite database (TestingConfig), so the
    suite needs no running server. Point TEST_DATABASE_URL at PostgreSQL to
    exercise the partial indexes and CHECK constraints there.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests every row is deleted (children first) so tests are isolated.
  - The activity worker thread is disabled in testing. Events queue up after
    each commit and are delivered on demand with process_pending().

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)        → dict with user + access_token
  - login(client, ...)           → dict with user + access_token
  - auth_headers(token)          → {"Authorization": "Bearer <token>"}
  - make_expense(...)            → HTTP response
  - make_settlement(...)         → HTTP response
  - process_pending()            → number of activity events delivered

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from settleup.app import create_app
from settleup.app.extensions import activity_dispatcher
from settleup.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    Tables are created on start and dropped at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test.

    Leftover activity events are delivered first so that none of them lands
    in the next test's feed.
    """
    yield  # run the test

    process_pending()

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token": "..."}
    """
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_expense(
    client,
    token: str,
    amount: str,
    participants: list[dict],
    title: str = "Test Expense",
    payer_id: int | None = None,
    split_method: str = "unequal",
):
    """
    Creates an expense and returns the HTTP response.
    participants: [{"user_id": ..., "share": "12.50"}, ...]; the payer defaults
    to the token owner.
    """
    payload: dict = {
        "title": title,
        "amount": amount,
        "split_method": split_method,
        "participants": participants,
    }
    if payer_id is not None:
        payload["payer_id"] = payer_id

    return client.post(
        "/api/v1/expenses",
        json=payload,
        headers=auth_headers(token),
    )


def make_settlement(
    client,
    token: str,
    to_user_id: int,
    amount: str,
    note: str | None = None,
):
    """Records a payment from the token owner to to_user_id. Returns the HTTP response."""
    payload: dict = {"to_user_id": to_user_id, "amount": amount}
    if note is not None:
        payload["note"] = note
    return client.post(
        "/api/v1/settlements",
        json=payload,
        headers=auth_headers(token),
    )


def process_pending() -> int:
    """Delivers queued activity events on the calling thread."""
    return activity_dispatcher.process_pending()


def trio(client) -> tuple[dict, dict, dict]:
    """Registers alice, bob and charlie. Returns their register() payloads."""
    return register(client, "alice"), register(client, "bob"), register(client, "charlie")
