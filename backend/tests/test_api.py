"""
HTTP tests for order placement, read views and error responses.
"""

from decimal import Decimal

import pytest

from conftest import add_existing_tickets
from ticketing.core.security import create_access_token


async def _buy(client, headers, ticket_type_id, quantity=1, seat_ids=None):
    return await client.post(
        "/api/v1/orders/",
        json={
            "items": [{"ticket_type_id": ticket_type_id, "quantity": quantity}],
            "seat_ids": seat_ids or [],
        },
        headers=headers,
    )


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"
    assert response.json()["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_create_order(client, auth_headers, standard_tickets, seats):
    response = await _buy(client, auth_headers, standard_tickets.id, 2, [seats["A2"].id])

    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["order"]["total_amount"]) == Decimal("50")
    assert data["order"]["status"] == "paid"
    assert len(data["tickets"]) == 2
    assert data["tickets"][0]["seat_id"] == seats["A2"].id
    assert data["tickets"][1]["seat_id"] is None
    assert data["tickets"][0]["qr_payload"] == "TKT:" + data["tickets"][0]["ticket_code"]
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_create_order_requires_auth(client, standard_tickets):
    response = await _buy(client, {}, standard_tickets.id)
    assert response.status_code == 401

    bad = {"Authorization": "Bearer not-a-token"}
    response = await _buy(client, bad, standard_tickets.id)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_quota_rejection_body(client, db_session, test_user, auth_headers, test_event, standard_tickets):
    await add_existing_tickets(db_session, test_user, standard_tickets, 3)

    response = await _buy(client, auth_headers, standard_tickets.id, 2)

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "QUOTA_EXCEEDED"
    assert data["event_id"] == test_event.id
    assert data["remaining"] == 1
    assert "1 more" in data["detail"]


@pytest.mark.asyncio
async def test_insufficient_stock_body(client, auth_headers, vip_tickets):
    response = await _buy(client, auth_headers, vip_tickets.id, 3)

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "INSUFFICIENT_STOCK"
    assert data["ticket_type_id"] == vip_tickets.id
    assert data["remaining"] == 2


@pytest.mark.asyncio
async def test_seat_conflict_body(client, auth_headers, other_user, standard_tickets, seats):
    rival_headers = {"Authorization": f"Bearer {create_access_token(data={'sub': str(other_user.id)})}"}
    first = await _buy(client, rival_headers, standard_tickets.id, 1, [seats["A1"].id])
    assert first.status_code == 201

    response = await _buy(client, auth_headers, standard_tickets.id, 1, [seats["A1"].id])

    assert response.status_code == 409
    assert response.json()["code"] == "SEAT_CONFLICT"
    assert response.json()["seats"] == ["A1"]


@pytest.mark.asyncio
async def test_unknown_ticket_type(client, auth_headers, test_user):
    response = await _buy(client, auth_headers, 99999)

    assert response.status_code == 404
    assert response.json()["code"] == "INVALID_REFERENCE"
    assert response.json()["ids"] == [99999]


@pytest.mark.asyncio
async def test_malformed_orders(client, auth_headers, standard_tickets):
    response = await client.post("/api/v1/orders/", json={"items": []}, headers=auth_headers)
    assert response.status_code == 422

    response = await _buy(client, auth_headers, standard_tickets.id, 0)
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_allowance(client, auth_headers, test_event, standard_tickets):
    await _buy(client, auth_headers, standard_tickets.id, 3)

    response = await client.get(f"/api/v1/events/{test_event.id}/allowance", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "event_id": test_event.id,
        "cap": 4,
        "already_purchased": 3,
        "remaining": 1,
    }

    missing = await client.get("/api/v1/events/424242/allowance", headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_availability(client, auth_headers, test_event, standard_tickets, vip_tickets):
    await _buy(client, auth_headers, vip_tickets.id, 2)

    response = await client.get(f"/api/v1/events/{test_event.id}/availability")

    assert response.status_code == 200
    data = response.json()
    assert data["cached"] is False
    assert [(t["name"], t["remaining"], t["status"]) for t in data["ticket_types"]] == [
        ("Standard", 100, "active"),
        ("VIP", 0, "sold_out"),
    ]


@pytest.mark.asyncio
async def test_seat_map(client, auth_headers, test_event, standard_tickets, seats):
    await _buy(client, auth_headers, standard_tickets.id, 1, [seats["A3"].id])

    response = await client.get(f"/api/v1/events/{test_event.id}/seats")

    assert response.status_code == 200
    taken = {s["label"]: s["taken"] for s in response.json()["seats"]}
    assert taken == {"A1": False, "A2": False, "A3": True, "B1": False}


@pytest.mark.asyncio
async def test_my_orders_and_tickets(client, auth_headers, other_user, standard_tickets):
    created = (await _buy(client, auth_headers, standard_tickets.id, 2)).json()
    order_id = created["order"]["id"]
    code = created["tickets"][0]["ticket_code"]

    orders = await client.get("/api/v1/orders/", headers=auth_headers)
    assert [o["order"]["id"] for o in orders.json()] == [order_id]

    order = await client.get(f"/api/v1/orders/{order_id}", headers=auth_headers)
    assert order.status_code == 200
    assert len(order.json()["tickets"]) == 2

    tickets = await client.get("/api/v1/tickets/", headers=auth_headers)
    assert len(tickets.json()) == 2

    ticket = await client.get(f"/api/v1/tickets/{code}", headers=auth_headers)
    assert ticket.status_code == 200
    assert ticket.json()["status"] == "valid"
    assert ticket.json()["qr_data_uri"].startswith("data:image/png;base64,")

    qr = await client.get(f"/api/v1/tickets/{code}/qr.png", headers=auth_headers)
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content.startswith(b"\x89PNG")

    rival_headers = {"Authorization": f"Bearer {create_access_token(data={'sub': str(other_user.id)})}"}
    foreign = await client.get(f"/api/v1/tickets/{code}", headers=rival_headers)
    assert foreign.status_code == 404
    assert foreign.json()["code"] == "NOT_FOUND"
