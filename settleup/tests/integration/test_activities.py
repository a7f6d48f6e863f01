"""
tests/integration/test_activities.py — Integration tests for the activity feed.

Endpoints covered:
  GET   /activities                 → 200 (kind / unread_only filters, paginated)
  GET   /activities/unread-count    → 200
  PATCH /activities/:id/read        → 200
  PATCH /activities/read-all        → 200

Activities are written by the dispatcher after the originating request
commits. The worker thread is off in testing, so each test calls
process_pending() before reading the feed.
"""

from __future__ import annotations

from .conftest import auth_headers, make_expense, make_settlement, process_pending, register, trio


def _feed(client, user, query: str = "") -> dict:
    resp = client.get(f"/api/v1/activities{query}", headers=auth_headers(user["access_token"]))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def _unread(client, user) -> int:
    resp = client.get("/api/v1/activities/unread-count", headers=auth_headers(user["access_token"]))
    return resp.get_json()["data"]["unread"]


def _lunch(client, alice, bob) -> int:
    resp = make_expense(
        client, alice["access_token"], "40.00",
        participants=[
            {"user_id": alice["user"]["id"], "share": "20.00"},
            {"user_id": bob["user"]["id"],   "share": "20.00"},
        ],
        title="Lunch",
    )
    assert resp.status_code == 201
    return resp.get_json()["data"]["id"]


class TestFeedDelivery:

    def test_nothing_appears_before_delivery(self, client):
        alice, bob, _ = trio(client)
        _lunch(client, alice, bob)
        assert _feed(client, bob)["data"] == []

    def test_expense_creation_reaches_every_party(self, client):
        alice, bob, charlie = trio(client)
        expense_id = _lunch(client, alice, bob)
        assert process_pending() == 1

        for user in (alice, bob):
            items = _feed(client, user)["data"]
            assert len(items) == 1
            assert items[0]["kind"] == "EXPENSE_CREATED"
            assert items[0]["actor"]["id"] == alice["user"]["id"]
            assert items[0]["payload"]["expense_id"] == expense_id
            assert items[0]["payload"]["amount"] == 4000
            assert items[0]["is_read"] is False

        assert _feed(client, charlie)["data"] == []

    def test_rejected_request_announces_nothing(self, client):
        alice, bob, _ = trio(client)
        resp = make_expense(
            client, alice["access_token"], "40.00",
            participants=[{"user_id": bob["user"]["id"], "share": "10.00"}],
        )
        assert resp.status_code == 422
        assert process_pending() == 0

    def test_edit_records_changed_fields(self, client):
        alice, bob, _ = trio(client)
        expense_id = _lunch(client, alice, bob)
        client.patch(
            f"/api/v1/expenses/{expense_id}",
            json={"title": "Team lunch"},
            headers=auth_headers(bob["access_token"]),
        )
        process_pending()

        items = _feed(client, alice, "?kind=EXPENSE_UPDATED")["data"]
        assert len(items) == 1
        assert items[0]["actor"]["id"] == bob["user"]["id"]
        assert items[0]["payload"]["changed_fields"] == ["title"]

    def test_delete_and_restore_are_announced(self, client):
        alice, bob, _ = trio(client)
        expense_id = _lunch(client, alice, bob)
        headers = auth_headers(alice["access_token"])
        client.delete(f"/api/v1/expenses/{expense_id}", json={"reason": "Oops"}, headers=headers)
        client.post(f"/api/v1/expenses/{expense_id}/restore", headers=headers)
        process_pending()

        kinds = [a["kind"] for a in _feed(client, bob)["data"]]
        assert kinds == ["EXPENSE_RESTORED", "EXPENSE_DELETED", "EXPENSE_CREATED"]

    def test_settlement_reaches_both_parties(self, client):
        alice, bob, _ = trio(client)
        make_settlement(client, bob["access_token"], alice["user"]["id"], "5.00", note="Coffee")
        process_pending()

        item = _feed(client, alice)["data"][0]
        assert item["kind"] == "SETTLEMENT_CREATED"
        assert item["payload"]["note"] == "Coffee"
        assert _feed(client, bob)["pagination"]["total"] == 1

    def test_friend_added_reaches_the_friend(self, client):
        alice, bob, _ = trio(client)
        client.post(
            "/api/v1/friends",
            json={"email": "bob@test.com"},
            headers=auth_headers(alice["access_token"]),
        )
        process_pending()
        assert _feed(client, bob)["data"][0]["kind"] == "FRIEND_ADDED"


class TestReadState:

    def test_mark_one_read(self, client):
        alice, bob, _ = trio(client)
        _lunch(client, alice, bob)
        process_pending()
        activity_id = _feed(client, bob)["data"][0]["id"]
        assert _unread(client, bob) == 1

        resp = client.patch(
            f"/api/v1/activities/{activity_id}/read",
            headers=auth_headers(bob["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_read"] is True
        assert _unread(client, bob) == 0
        # alice's copy is independent
        assert _unread(client, alice) == 1

    def test_unread_only_filter(self, client):
        alice, bob, _ = trio(client)
        _lunch(client, alice, bob)
        _lunch(client, alice, bob)
        process_pending()
        newest = _feed(client, bob)["data"][0]["id"]
        client.patch(f"/api/v1/activities/{newest}/read", headers=auth_headers(bob["access_token"]))

        unread = _feed(client, bob, "?unread_only=true")
        assert unread["pagination"]["total"] == 1
        assert unread["data"][0]["id"] != newest

    def test_mark_all_read(self, client):
        alice, bob, _ = trio(client)
        _lunch(client, alice, bob)
        _lunch(client, alice, bob)
        process_pending()

        resp = client.patch("/api/v1/activities/read-all", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["marked_read"] == 2
        assert _unread(client, bob) == 0

    def test_non_recipient_cannot_mark_read(self, client):
        alice, bob, charlie = trio(client)
        _lunch(client, alice, bob)
        process_pending()
        activity_id = _feed(client, bob)["data"][0]["id"]

        resp = client.patch(
            f"/api/v1/activities/{activity_id}/read",
            headers=auth_headers(charlie["access_token"]),
        )
        assert resp.status_code == 403

    def test_missing_activity_returns_404(self, client):
        alice = register(client, "alice")
        resp = client.patch(
            "/api/v1/activities/99999/read",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "ACTIVITY_NOT_FOUND"

    def test_unknown_kind_filter_returns_400(self, client):
        alice = register(client, "alice")
        resp = client.get(
            "/api/v1/activities?kind=SOMETHING_ELSE",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_ACTIVITY_KIND"
