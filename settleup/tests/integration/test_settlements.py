"""
tests/integration/test_settlements.py — Integration tests for settlement endpoints.

Endpoints covered:
  POST /settlements                → 201 (warnings may include OVERPAYMENT)
  GET  /settlements?with_user=     → 200
  GET  /settlements/:id            → 200

The payer is always the authenticated caller. Over-payment is recorded and
flagged with a warning, never rejected.
"""

from __future__ import annotations

from .conftest import auth_headers, make_expense, make_settlement, register, trio


def _debt(client, alice, bob, amount="100.00"):
    """bob owes alice `amount`."""
    resp = make_expense(
        client, alice["access_token"], amount,
        participants=[{"user_id": bob["user"]["id"], "share": amount}],
    )
    assert resp.status_code == 201


def _detail_codes(resp) -> set[str]:
    return {d["code"] for d in resp.get_json()["error"]["details"]}


class TestCreateSettlement:

    def test_create_returns_201_without_warnings(self, client):
        alice, bob, _ = trio(client)
        _debt(client, alice, bob)

        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "60.00", note="Cash")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["warnings"] == []
        assert body["data"]["from_user"]["id"] == bob["user"]["id"]
        assert body["data"]["to_user"]["id"] == alice["user"]["id"]
        assert body["data"]["amount"] == 6000
        assert body["data"]["amount_display"] == "60.00"
        assert body["data"]["note"] == "Cash"

    def test_exact_settlement_has_no_warning(self, client):
        alice, bob, _ = trio(client)
        _debt(client, alice, bob)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "100.00")
        assert resp.status_code == 201
        assert resp.get_json()["warnings"] == []

    def test_overpayment_is_recorded_with_warning(self, client):
        alice, bob, _ = trio(client)
        _debt(client, alice, bob)

        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "150.00")
        assert resp.status_code == 201
        warnings = resp.get_json()["warnings"]
        assert [w["code"] for w in warnings] == ["OVERPAYMENT"]
        assert warnings[0]["outstanding"] == 10000

    def test_advance_payment_with_no_debt_warns(self, client):
        alice, bob, _ = trio(client)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "10.00")
        assert resp.status_code == 201
        assert resp.get_json()["warnings"][0]["outstanding"] == 0

    def test_zero_amount_rejected(self, client):
        alice, bob, _ = trio(client)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "0.00")
        assert resp.status_code == 422
        assert _detail_codes(resp) == {"NON_POSITIVE_AMOUNT"}

    def test_negative_amount_rejected(self, client):
        alice, bob, _ = trio(client)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "-5.00")
        assert resp.status_code == 422
        assert _detail_codes(resp) == {"NON_POSITIVE_AMOUNT"}

    def test_self_settlement_rejected(self, client):
        alice = register(client, "alice")
        resp = make_settlement(client, alice["access_token"], alice["user"]["id"], "5.00")
        assert resp.status_code == 422
        assert _detail_codes(resp) == {"SAME_USER_SETTLEMENT"}

    def test_self_settlement_with_zero_reports_both(self, client):
        alice = register(client, "alice")
        resp = make_settlement(client, alice["access_token"], alice["user"]["id"], "0")
        assert _detail_codes(resp) == {"SAME_USER_SETTLEMENT", "NON_POSITIVE_AMOUNT"}

    def test_unknown_recipient_rejected(self, client):
        alice = register(client, "alice")
        resp = make_settlement(client, alice["access_token"], 99999, "5.00")
        assert resp.status_code == 422
        assert _detail_codes(resp) == {"SETTLEMENT_USER_NOT_FOUND"}

    def test_precision_rejected(self, client):
        alice, bob, _ = trio(client)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "1.999")
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_AMOUNT_PRECISION"

    def test_oversized_amount_returns_400(self, client):
        alice, bob, _ = trio(client)
        resp = make_settlement(client, bob["access_token"], alice["user"]["id"], "1e30")
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_FIELD"
        assert error["field"] == "amount"

    def test_missing_recipient_returns_400(self, client):
        bob = register(client, "bob")
        resp = client.post(
            "/api/v1/settlements",
            json={"amount": "5.00"},
            headers=auth_headers(bob["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"
        assert resp.get_json()["error"]["field"] == "to_user_id"


class TestReadSettlements:

    def test_list_filters_by_counterparty(self, client):
        alice, bob, charlie = trio(client)
        make_settlement(client, bob["access_token"], alice["user"]["id"], "5.00")
        make_settlement(client, charlie["access_token"], bob["user"]["id"], "7.00")

        headers = auth_headers(bob["access_token"])
        everything = client.get("/api/v1/settlements", headers=headers).get_json()
        assert everything["pagination"]["total"] == 2

        with_alice = client.get(
            f"/api/v1/settlements?with_user={alice['user']['id']}",
            headers=headers,
        ).get_json()
        assert [s["amount"] for s in with_alice["data"]] == [500]

    def test_party_can_read_settlement(self, client):
        alice, bob, _ = trio(client)
        created = make_settlement(client, bob["access_token"], alice["user"]["id"], "5.00")
        settlement_id = created.get_json()["data"]["id"]

        resp = client.get(
            f"/api/v1/settlements/{settlement_id}",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == settlement_id

    def test_non_party_gets_403(self, client):
        alice, bob, charlie = trio(client)
        created = make_settlement(client, bob["access_token"], alice["user"]["id"], "5.00")
        settlement_id = created.get_json()["data"]["id"]

        resp = client.get(
            f"/api/v1/settlements/{settlement_id}",
            headers=auth_headers(charlie["access_token"]),
        )
        assert resp.status_code == 403

    def test_missing_settlement_returns_404(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/settlements/99999", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "SETTLEMENT_NOT_FOUND"
