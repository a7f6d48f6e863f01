"""
tests/unit/test_money_and_schemas.py — Unit tests for money.py and the marshmallow schemas.

What this file proves:
  - Major ⇄ minor unit conversion is exact at 2 places and rounds half-up beyond
  - MinorUnits rejects more than 2 decimal places instead of rounding, and keeps
    the sign so range rules can be reported by validation_service
  - Request schemas enforce field types, lengths and enum values
  - PATCH /expenses has no payer field and requires at least one change

No database and no Flask application context: schemas inherit from
marshmallow.Schema directly (see extensions.py).
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from marshmallow import ValidationError

from settleup.app.errors import ErrorCode
from settleup.app.events import ActivityKind
from settleup.app.models.expense import SplitMethod
from settleup.app.money import to_major_units, to_minor_units
from settleup.app.schemas.activity_schema import FeedQuerySchema
from settleup.app.schemas.auth_schema import RegisterSchema
from settleup.app.schemas.common_schema import pagination_meta, resolve_page
from settleup.app.schemas.expense_schema import CreateExpenseSchema, PatchExpenseSchema
from settleup.app.schemas.settlement_schema import CreateSettlementSchema


# ═══════════════════════════════════════════════════════════════════════════
# money.py
# ═══════════════════════════════════════════════════════════════════════════

class TestMoney:

    @pytest.mark.parametrize("major, minor", [
        ("0", 0),
        ("0.01", 1),
        ("12.50", 1250),
        (12, 1200),
        (Decimal("99.99"), 9999),
        (0.1, 10),
        ("-3.25", -325),
    ])
    def test_to_minor_units(self, major, minor):
        assert to_minor_units(major) == minor

    def test_rounds_half_up_away_from_zero(self):
        assert to_minor_units("10.005") == 1001
        assert to_minor_units("-10.005") == -1001

    @pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", True, None])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(ValueError):
            to_minor_units(bad)

    def test_to_major_units_has_two_places(self):
        assert to_major_units(12345) == Decimal("123.45")
        assert str(to_major_units(5)) == "0.05"
        assert str(to_major_units(0)) == "0.00"

    @pytest.mark.parametrize("huge", ["1e30", Decimal("1E+999999")])
    def test_rejects_amounts_beyond_decimal_precision(self, huge):
        with pytest.raises(ValueError, match="too large"):
            to_minor_units(huge)


# ═══════════════════════════════════════════════════════════════════════════
# Expense schemas
# ═══════════════════════════════════════════════════════════════════════════

def _expense_body(**overrides) -> dict:
    body = {
        "title": "Dinner",
        "amount": "30.00",
        "participants": [{"user_id": 1, "share": "15.00"}, {"user_id": 2, "share": "15.00"}],
    }
    body.update(overrides)
    return body


class TestCreateExpenseSchema:

    def test_valid_body_loads_minor_units(self):
        data = CreateExpenseSchema().load(_expense_body())
        assert data["amount"] == 3000
        assert [p["share"] for p in data["participants"]] == [1500, 1500]
        assert data["payer_id"] is None
        assert data["split_method"] is SplitMethod.EQUAL

    def test_three_places_rejected_with_precision_code(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(_expense_body(amount="30.001"))
        assert exc_info.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_negative_share_passes_schema(self):
        # NEGATIVE_SHARE is reported by validation_service alongside other rules
        data = CreateExpenseSchema().load(_expense_body(participants=[{"user_id": 1, "share": "-1.00"}]))
        assert data["participants"][0]["share"] == -100

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(_expense_body(amount="-1.00"))
        assert "amount" in exc_info.value.messages

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(_expense_body(title="   "))
        assert "title" in exc_info.value.messages

    def test_unknown_split_method_uses_registered_code(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(_expense_body(split_method="weights"))
        assert exc_info.value.messages["split_method"] == [ErrorCode.INVALID_SPLIT_METHOD]

    def test_float_user_id_rejected(self):
        with pytest.raises(ValidationError):
            CreateExpenseSchema().load(_expense_body(participants=[{"user_id": 1.0, "share": "30.00"}]))

    def test_participants_required(self):
        body = _expense_body()
        del body["participants"]
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(body)
        assert "participants" in exc_info.value.messages


class TestPatchExpenseSchema:

    def test_partial_body_loads(self):
        data = PatchExpenseSchema().load({"amount": "12.00", "expected_version": 3})
        assert data == {"amount": 1200, "expected_version": 3}

    def test_payer_field_is_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            PatchExpenseSchema().load({"title": "x", "payer_id": 2})
        assert "payer_id" in exc_info.value.messages

    def test_oversized_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            PatchExpenseSchema().load({"amount": "100000000000000000"})
        assert exc_info.value.messages["amount"] == ["Amount is too large."]

    def test_version_alone_is_not_a_change(self):
        with pytest.raises(ValidationError) as exc_info:
            PatchExpenseSchema().load({"expected_version": 1})
        assert "_schema" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Settlement, auth, feed and pagination schemas
# ═══════════════════════════════════════════════════════════════════════════

class TestOtherSchemas:

    def test_settlement_zero_amount_passes_schema(self):
        data = CreateSettlementSchema().load({"to_user_id": 2, "amount": "0"})
        assert data["amount"] == 0
        assert data["note"] is None

    def test_settlement_note_length_capped(self):
        with pytest.raises(ValidationError):
            CreateSettlementSchema().load({"to_user_id": 2, "amount": "1.00", "note": "x" * 201})

    def test_register_requires_two_real_characters(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load({"name": " a ", "email": "a@b.co", "password": "secret1"})
        assert "name" in exc_info.value.messages

    def test_feed_query_parses_filters(self):
        data = FeedQuerySchema().load({"kind": "SETTLEMENT_CREATED", "unread_only": "true", "x": "1"})
        assert data["kind"] is ActivityKind.SETTLEMENT_CREATED
        assert data["unread_only"] is True
        assert data["page"] == 1

    def test_feed_query_unknown_kind(self):
        with pytest.raises(ValidationError) as exc_info:
            FeedQuerySchema().load({"kind": "NOPE"})
        assert exc_info.value.messages["kind"] == [ErrorCode.INVALID_ACTIVITY_KIND]

    def test_resolve_page_applies_default_and_ceiling(self):
        config = {"DEFAULT_PAGE_SIZE": 20, "MAX_PAGE_SIZE": 100}
        assert resolve_page({"page": 2, "limit": None}, config) == (2, 20)
        assert resolve_page({"page": 1, "limit": 500}, config) == (1, 100)

    def test_pagination_meta_rounds_pages_up(self):
        assert pagination_meta(1, 20, 41) == {"page": 1, "limit": 20, "total": 41, "pages": 3}
        assert pagination_meta(1, 20, 0)["pages"] == 0


# ═══════════════════════════════════════════════════════════════════════════
# Amounts that do not fit a BIGINT column
# ═══════════════════════════════════════════════════════════════════════════

class TestStorableRange:

    @pytest.mark.parametrize("amount", ["1e30", "100000000000000000"])
    def test_expense_amount(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(_expense_body(amount=amount))
        assert exc_info.value.messages["amount"] == ["Amount is too large."]

    def test_participant_share(self):
        body = _expense_body(participants=[{"user_id": 1, "share": "-1e30"}])
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(body)
        assert exc_info.value.messages["participants"][0]["share"] == ["Amount is too large."]

    def test_settlement_amount(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateSettlementSchema().load({"to_user_id": 2, "amount": "1e30"})
        assert exc_info.value.messages["amount"] == ["Amount is too large."]

    def test_largest_storable_amount_loads(self):
        data = CreateSettlementSchema().load({"to_user_id": 2, "amount": "92233720368547758.07"})
        assert data["amount"] == 2**63 - 1
