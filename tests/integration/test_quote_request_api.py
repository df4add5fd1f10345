"""
End-to-end HTTP tests: buyer creates, invites and sends; suppliers respond;
buyer reads responses, summary and exports.
"""

from datetime import timedelta

import pytest

from quoteflow.database import utcnow
from quoteflow.services.export_service import decode_delimited
from tests.factories import (
    OTHER_BUYER_ID,
    buyer_headers,
    line_item,
    response_payload,
    seed_supplier,
    supplier_headers,
)

BASE = "/api/v1/quote-requests"


@pytest.fixture
async def suppliers(session):
    return [await seed_supplier(session, name) for name in ("Alpha", "Bravo, Ltd.", "Charlie")]


async def _create_sent_request(client, opportunity, invitees):
    deadline = (utcnow() + timedelta(days=7)).isoformat()
    resp = await client.post(
        BASE,
        json={
            "opportunity_id": str(opportunity.id),
            "title": "Office chairs",
            "description": "Ergonomic chairs",
            "deadline": deadline,
            "requirements": {"quantity": 10},
        },
        headers=buyer_headers(),
    )
    assert resp.status_code == 201, resp.text
    qr = resp.json()
    assert qr["status"] == "draft"

    resp = await client.post(
        f"{BASE}/{qr['id']}/suppliers",
        json={"supplier_ids": [str(s.id) for s in invitees]},
        headers=buyer_headers(),
    )
    assert resp.status_code == 201, resp.text

    resp = await client.post(f"{BASE}/{qr['id']}/send", headers=buyer_headers())
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "sent"
    assert resp.json()["invited_count"] == len(invitees)
    return qr["id"]


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["checks"]["db"] == "ok"
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    resp = await client.get(BASE)
    assert resp.status_code in (401, 403)

    resp = await client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_TOKEN_INVALID"


@pytest.mark.asyncio
async def test_full_response_cycle(client, opportunity, suppliers):
    alpha, bravo, charlie = suppliers
    qr_id = await _create_sent_request(client, opportunity, [alpha, bravo, charlie])

    resp = await client.post(
        f"{BASE}/{qr_id}/responses",
        json=response_payload(line_item("Chair", 10, 15_000), notes='Includes "white glove" delivery'),
        headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "submitted"
    assert body["supplier_name"] == "Alpha"
    assert body["line_items"][0]["total_cents"] == 150_000
    assert body["pricing"] == {
        "total_cents": 150_000,
        "item_count": 1,
        "average_unit_price_cents": 15_000,
    }

    resp = await client.post(
        f"{BASE}/{qr_id}/responses",
        json=response_payload(line_item("Chair", 9, 15_000), total=140_000),
        headers=supplier_headers(bravo.id),
    )
    assert resp.status_code == 422
    assert resp.json() == {
        "error": {
            "code": "TOTAL_PRICE_MISMATCH",
            "message": "Total price does not match sum of line items",
            "details": {"expected": 135_000, "actual": 140_000},
        }
    }

    resp = await client.post(
        f"{BASE}/{qr_id}/responses",
        json={"line_items": [], "total_price_cents": 0},
        headers=supplier_headers(bravo.id),
    )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "MALFORMED_PAYLOAD"
    fields = {e["field"] for e in error["details"]["errors"]}
    assert {"line_items", "total_price_cents", "delivery_time_days"} <= fields

    resp = await client.post(
        f"{BASE}/{qr_id}/responses",
        json=response_payload(),
        headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_RESPONSE"

    resp = await client.post(
        f"{BASE}/{qr_id}/responses/decline",
        json={"reason": "Out of stock"},
        headers=supplier_headers(charlie.id),
    )
    assert resp.status_code == 201
    assert resp.json()["status"] == "declined"

    resp = await client.get(f"{BASE}/{qr_id}/responses", headers=buyer_headers())
    assert resp.status_code == 200
    listing = resp.json()
    assert [r["status"] for r in listing["data"]] == ["submitted", "declined"]
    assert listing["summary"]["total_invited"] == 3
    assert listing["summary"]["response_rate"] == 67

    response_id = listing["data"][0]["id"]
    resp = await client.get(f"{BASE}/{qr_id}/responses/{response_id}", headers=buyer_headers())
    assert resp.status_code == 200
    assert resp.json()["notes"] == 'Includes "white glove" delivery'

    resp = await client.get(f"{BASE}/{qr_id}/summary", headers=buyer_headers())
    summary = resp.json()
    assert summary["submitted_count"] == 1
    assert summary["declined_count"] == 1
    assert summary["lowest_price"] == 150_000

    resp = await client.get(
        f"{BASE}/{qr_id}/export",
        params={"type": "responses", "format": "delimited-text", "include_line_items": "true"},
        headers=buyer_headers(),
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="responses-office-chairs-' in resp.headers["content-disposition"]
    rows = decode_delimited(resp.text)
    assert rows[0][-1] == "Line Items"
    by_supplier = {row[1]: row for row in rows[1:]}
    assert by_supplier["Alpha"][3] == "$1,500.00"
    assert by_supplier["Alpha"][6] == 'Includes "white glove" delivery'
    assert by_supplier["Alpha"][7] == "Chair (10x $150.00)"
    assert by_supplier["Charlie"][3] == "N/A"

    resp = await client.get(
        f"{BASE}/{qr_id}/export",
        params={"type": "analysis", "format": "structured"},
        headers=buyer_headers(),
    )
    assert resp.status_code == 200
    table = resp.json()
    assert table["headers"] == ["Metric", "Value"]
    assert ["Response Rate", "67%"] in table["rows"]

    resp = await client.get(
        f"{BASE}/{qr_id}/export", params={"type": "pdf"}, headers=buyer_headers(),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "MALFORMED_PAYLOAD"


@pytest.mark.asyncio
async def test_uninvited_supplier_and_other_buyer(client, opportunity, suppliers):
    alpha, _bravo, charlie = suppliers
    qr_id = await _create_sent_request(client, opportunity, [alpha])

    resp = await client.post(
        f"{BASE}/{qr_id}/responses", json=response_payload(), headers=supplier_headers(charlie.id),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "NOT_INVITED"

    resp = await client.get(f"{BASE}/{qr_id}", headers=buyer_headers(OTHER_BUYER_ID))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    resp = await client.get(f"{BASE}/{qr_id}/summary", headers=buyer_headers(OTHER_BUYER_ID))
    assert resp.status_code == 403

    resp = await client.post(
        BASE,
        json={"opportunity_id": str(opportunity.id), "title": "x", "deadline": "2030-01-01T00:00:00"},
        headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"

    resp = await client.post(
        f"{BASE}/{qr_id}/responses", json=response_payload(), headers=buyer_headers(),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_single_invitee_submission_completes_request(client, opportunity, suppliers):
    alpha = suppliers[0]
    qr_id = await _create_sent_request(client, opportunity, [alpha])

    resp = await client.post(
        f"{BASE}/{qr_id}/responses", json=response_payload(), headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 201

    resp = await client.get(f"{BASE}/{qr_id}", headers=buyer_headers())
    assert resp.json()["status"] == "completed"

    resp = await client.post(f"{BASE}/{qr_id}/complete", headers=buyer_headers())
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    resp = await client.post(
        f"{BASE}/{qr_id}/suppliers",
        json={"supplier_ids": [str(suppliers[1].id)]},
        headers=buyer_headers(),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_draft_lifecycle_endpoints(client, opportunity, suppliers):
    alpha, bravo, _charlie = suppliers
    resp = await client.post(
        BASE,
        json={"opportunity_id": str(opportunity.id), "title": "Lamps", "deadline": "2099-01-01T00:00:00Z"},
        headers=buyer_headers(),
    )
    qr_id = resp.json()["id"]

    resp = await client.post(f"{BASE}/{qr_id}/send", headers=buyer_headers())
    assert resp.status_code == 409

    resp = await client.put(f"{BASE}/{qr_id}", json={"title": "Desk lamps"}, headers=buyer_headers())
    assert resp.status_code == 200
    assert resp.json()["title"] == "Desk lamps"

    resp = await client.post(
        f"{BASE}/{qr_id}/suppliers",
        json={"supplier_ids": [str(alpha.id), str(bravo.id)], "notification_method": "platform"},
        headers=buyer_headers(),
    )
    assert [i["supplier_name"] for i in resp.json()] == ["Alpha", "Bravo, Ltd."]

    resp = await client.post(
        f"{BASE}/{qr_id}/suppliers", json={"supplier_ids": [str(alpha.id)]}, headers=buyer_headers(),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_INVITATION"

    resp = await client.post(f"{BASE}/{qr_id}/suppliers/{alpha.id}/notified", headers=buyer_headers())
    assert resp.status_code == 204
    resp = await client.post(f"{BASE}/{qr_id}/suppliers/{alpha.id}/notified", headers=buyer_headers())
    assert resp.status_code == 409

    resp = await client.get(f"{BASE}/{qr_id}/suppliers", headers=buyer_headers())
    flags = {i["supplier_name"]: i["notification_sent"] for i in resp.json()}
    assert flags == {"Alpha": True, "Bravo, Ltd.": False}

    resp = await client.get(BASE, params={"status": "draft"}, headers=buyer_headers())
    assert resp.json()["pagination"]["total"] == 1
    assert resp.json()["data"][0]["invited_count"] == 2

    resp = await client.get(
        f"{BASE}/{qr_id}/export", params={"type": "quote-request"}, headers=buyer_headers(),
    )
    rows = decode_delimited(resp.text)
    assert rows[1][1] == "Desk lamps"
    assert rows[1][3] == "Draft"

    resp = await client.delete(f"{BASE}/{qr_id}", headers=buyer_headers())
    assert resp.status_code == 204
    resp = await client.get(f"{BASE}/{qr_id}", headers=buyer_headers())
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_decline_without_body_and_after_draft(client, opportunity, suppliers):
    alpha, bravo, _charlie = suppliers
    qr_id = await _create_sent_request(client, opportunity, [alpha, bravo])

    resp = await client.post(f"{BASE}/{qr_id}/responses/decline", headers=supplier_headers(bravo.id))
    assert resp.status_code == 201, resp.text
    assert resp.json()["notes"] is None
    assert resp.json()["pricing"] is None

    resp = await client.post(
        f"{BASE}/{qr_id}/responses",
        params={"draft": "true"},
        json=response_payload(line_item("Chair", 10, 15_000)),
        headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 201
    assert resp.json()["status"] == "pending"
    assert resp.json()["pricing"]["total_cents"] == 150_000

    resp = await client.post(
        f"{BASE}/{qr_id}/responses/decline",
        json={"reason": "No stock"},
        headers=supplier_headers(alpha.id),
    )
    assert resp.status_code == 201
    declined = resp.json()
    assert declined["status"] == "declined"
    assert declined["notes"] == "No stock"
    assert (declined["total_price_cents"], declined["delivery_time_days"]) == (None, None)
    assert declined["line_items"] == [] and declined["pricing"] is None

    resp = await client.get(
        f"{BASE}/{qr_id}/export",
        params={"type": "responses", "include_line_items": "true"},
        headers=buyer_headers(),
    )
    rows = decode_delimited(resp.text)
    alpha_row = next(row for row in rows[1:] if row[1] == "Alpha")
    assert alpha_row[2:5] == ["Declined", "N/A", "N/A"]
    assert alpha_row[-1] == ""

    resp = await client.get(f"{BASE}/{qr_id}", headers=buyer_headers())
    assert resp.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_reconcile_job_requires_secret(client):
    resp = await client.post("/internal/jobs/reconcile-quote-requests")
    assert resp.status_code == 403

    resp = await client.post(
        "/internal/jobs/reconcile-quote-requests",
        headers={"X-Internal-Secret": "test-internal-secret"},
    )
    assert resp.status_code == 200
    assert resp.json()["checked"] == 0
