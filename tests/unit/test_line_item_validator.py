"""
Unit tests for quoteflow/services/line_item_validator.py

Pure functions, no database. Tests: validate_payload, check_arithmetic,
pricing_summary.
"""

import pytest

from quoteflow.errors import LineItemMismatch, MalformedPayload, TotalPriceMismatch
from quoteflow.schemas.supplier_response import MAX_CENTS, MAX_INT
from quoteflow.services.line_item_validator import (
    check_arithmetic,
    pricing_summary,
    validate_payload,
)


def _payload(**overrides):
    payload = {
        "line_items": [
            {"item": "Office chair", "quantity": 10, "unit_price_cents": 15_000, "total_cents": 150_000},
        ],
        "total_price_cents": 150_000,
        "delivery_time_days": 14,
    }
    payload.update(overrides)
    return payload


def _fields(exc: MalformedPayload) -> set:
    return {e["field"] for e in exc.details["errors"]}


# ---------------------------------------------------------------------------
# validate_payload
# ---------------------------------------------------------------------------


def test_valid_payload_parses():
    body = validate_payload(_payload(notes="Net 30"))
    assert body.total_price_cents == 150_000
    assert body.line_items[0].item == "Office chair"
    assert body.notes == "Net 30"
    assert body.attachments == []


def test_description_is_accepted_for_item_name():
    body = validate_payload(_payload(line_items=[
        {"description": "Desk", "quantity": 1, "unit_price_cents": 500, "total_cents": 500},
    ], total_price_cents=500))
    assert body.line_items[0].item == "Desk"


def test_item_name_is_trimmed():
    body = validate_payload(_payload(line_items=[
        {"item": "  Desk  ", "quantity": 1, "unit_price_cents": 500, "total_cents": 500},
    ], total_price_cents=500))
    assert body.line_items[0].item == "Desk"


def test_empty_line_items_rejected():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(_payload(line_items=[]))
    assert "line_items" in _fields(exc_info.value)


def test_all_field_errors_reported_together():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload({
            "line_items": [
                {"item": "   ", "quantity": 0, "unit_price_cents": -5, "total_cents": 0},
            ],
            "total_price_cents": 0,
            "delivery_time_days": 0,
        })
    fields = _fields(exc_info.value)
    assert {
        "line_items.0.item",
        "line_items.0.quantity",
        "line_items.0.unit_price_cents",
        "line_items.0.total_cents",
        "total_price_cents",
        "delivery_time_days",
    } <= fields


def test_fractional_money_rejected():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(_payload(total_price_cents=1500.5))
    assert "total_price_cents" in _fields(exc_info.value)


def test_numeric_strings_rejected():
    with pytest.raises(MalformedPayload):
        validate_payload(_payload(delivery_time_days="14"))


def test_attachment_shape_checked():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(_payload(attachments=[
            {"filename": "spec.pdf", "url": "ftp://files/spec.pdf", "size": 0, "type": "application/pdf"},
        ]))
    fields = _fields(exc_info.value)
    assert "attachments.0.url" in fields
    assert "attachments.0.size" in fields


def test_attachment_type_alias():
    body = validate_payload(_payload(attachments=[
        {"filename": "spec.pdf", "url": "https://files/spec.pdf", "size": 2048, "type": "application/pdf"},
    ]))
    assert body.attachments[0].mime_type == "application/pdf"


def test_notes_length_limit():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(_payload(notes="x" * 2001))
    assert "notes" in _fields(exc_info.value)


def test_non_object_payload_rejected():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(["not", "a", "dict"])
    assert _fields(exc_info.value) == {"body"}


def test_values_beyond_column_width_rejected():
    with pytest.raises(MalformedPayload) as exc_info:
        validate_payload(_payload(
            line_items=[
                {"item": "Bolt", "quantity": 3_000_000_000, "unit_price_cents": 1, "total_cents": 3_000_000_000},
                {"item": "Nut", "quantity": 1, "unit_price_cents": 10**19, "total_cents": 10**19},
            ],
            total_price_cents=10**19 + 3_000_000_000,
            delivery_time_days=2**31,
        ))
    assert _fields(exc_info.value) == {
        "line_items.0.quantity",
        "line_items.1.unit_price_cents",
        "line_items.1.total_cents",
        "total_price_cents",
        "delivery_time_days",
    }


def test_largest_storable_values_accepted():
    body = validate_payload(_payload(
        line_items=[
            {"item": "Bolt", "quantity": MAX_INT, "unit_price_cents": 1, "total_cents": MAX_INT},
        ],
        total_price_cents=MAX_INT,
        delivery_time_days=MAX_INT,
    ))
    assert check_arithmetic(body) == MAX_INT


def test_line_product_overflow_is_malformed():
    # Each field fits its column but the product does not.
    body = validate_payload(_payload(
        line_items=[
            {"item": "Chair", "quantity": 1, "unit_price_cents": 1, "total_cents": 1},
            {"item": "Gold", "quantity": 4, "unit_price_cents": MAX_CENTS // 2, "total_cents": MAX_CENTS},
        ],
        total_price_cents=MAX_CENTS,
    ))
    with pytest.raises(MalformedPayload) as exc_info:
        check_arithmetic(body)
    assert _fields(exc_info.value) == {"line_items.1"}


# ---------------------------------------------------------------------------
# check_arithmetic
# ---------------------------------------------------------------------------


def test_matching_totals_pass():
    body = validate_payload(_payload(
        line_items=[
            {"item": "Chair", "quantity": 10, "unit_price_cents": 10_000, "total_cents": 100_000},
            {"item": "Desk", "quantity": 2, "unit_price_cents": 25_000, "total_cents": 50_000},
        ],
        total_price_cents=150_000,
    ))
    assert check_arithmetic(body) == 150_000


def test_line_total_mismatch():
    body = validate_payload(_payload(
        line_items=[
            {"item": "Chair", "quantity": 3, "unit_price_cents": 1_000, "total_cents": 3_001},
        ],
        total_price_cents=3_001,
    ))
    with pytest.raises(LineItemMismatch) as exc_info:
        check_arithmetic(body)
    err = exc_info.value
    assert (err.item, err.expected, err.actual) == ("Chair", 3_000, 3_001)
    assert err.details == {"item": "Chair", "expected": 3_000, "actual": 3_001}


def test_first_bad_line_reported():
    body = validate_payload(_payload(
        line_items=[
            {"item": "Chair", "quantity": 1, "unit_price_cents": 100, "total_cents": 100},
            {"item": "Desk", "quantity": 2, "unit_price_cents": 100, "total_cents": 300},
            {"item": "Lamp", "quantity": 2, "unit_price_cents": 100, "total_cents": 500},
        ],
        total_price_cents=900,
    ))
    with pytest.raises(LineItemMismatch) as exc_info:
        check_arithmetic(body)
    assert exc_info.value.item == "Desk"


def test_total_price_mismatch():
    body = validate_payload(_payload(
        line_items=[
            {"item": "Chair", "quantity": 9, "unit_price_cents": 15_000, "total_cents": 135_000},
        ],
        total_price_cents=140_000,
    ))
    with pytest.raises(TotalPriceMismatch) as exc_info:
        check_arithmetic(body)
    assert exc_info.value.expected == 135_000
    assert exc_info.value.actual == 140_000


def test_off_by_one_cent_is_a_mismatch():
    body = validate_payload(_payload(total_price_cents=150_001))
    with pytest.raises(TotalPriceMismatch):
        check_arithmetic(body)


# ---------------------------------------------------------------------------
# pricing_summary
# ---------------------------------------------------------------------------


def test_pricing_summary_rounds_average_unit_price():
    body = validate_payload(_payload(
        line_items=[
            {"item": "A", "quantity": 2, "unit_price_cents": 100, "total_cents": 200},
            {"item": "B", "quantity": 1, "unit_price_cents": 101, "total_cents": 101},
        ],
        total_price_cents=301,
    ))
    summary = pricing_summary(body.line_items)
    assert summary.total_cents == 301
    assert summary.item_count == 2
    # 301 / 3 = 100.33
    assert summary.average_unit_price_cents == 100


def test_pricing_summary_empty():
    summary = pricing_summary([])
    assert (summary.total_cents, summary.item_count, summary.average_unit_price_cents) == (0, 0, 0)
