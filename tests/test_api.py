"""
HTTP API tests
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tabsettle.core.database import get_session
from tabsettle.main import app

API = "/api/v1"


@pytest.fixture
def client(db, shop, table):
    app.dependency_overrides[get_session] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def money(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def session_id(client, table):
    response = client.post(f"{API}/table-sessions/", json={"table_id": str(table.id), "covers": 2})
    assert response.status_code == 201
    sid = response.json()["id"]

    client.post(f"{API}/table-sessions/{sid}/orders", json={
        "items": [{"menu_item_name": "Pizza Margherita", "price": "9.00"}],
    })
    client.post(f"{API}/table-sessions/{sid}/orders", json={
        "items": [{"menu_item_name": "Kebab Classico", "price": "6.00", "quantity": 2}],
    })
    return sid


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_list_tables(client):
    response = client.post(f"{API}/tables/", json={"name": "T9", "capacity": 6})
    assert response.status_code == 201
    assert response.json()["status"] == "available"

    names = [t["name"] for t in client.get(f"{API}/tables/").json()]
    assert names == ["T1", "T9"]


def test_shop_settings(client):
    assert money(client.get(f"{API}/settings/").json()["cover_charge"]) == Decimal("1.50")

    response = client.put(f"{API}/settings/", json={"cover_charge": "2.00"})

    assert response.status_code == 200
    assert money(response.json()["cover_charge"]) == Decimal("2.00")


def test_open_session_twice(client, session_id, table):
    response = client.post(f"{API}/table-sessions/", json={"table_id": str(table.id)})

    assert response.status_code == 409
    assert response.json()["error_code"] == "TABLE_ALREADY_OPEN"


def test_session_flow(client, session_id):
    summary = client.get(f"{API}/table-sessions/{session_id}/summary").json()
    assert money(summary["total"]) == Decimal("21.00")
    assert summary["cover_applied"] is False

    response = client.post(f"{API}/table-sessions/{session_id}/cover", json={"include": True})
    assert money(response.json()["total"]) == Decimal("24.00")

    response = client.post(f"{API}/table-sessions/{session_id}/payments", json={
        "amount": "10.00", "payment_method": "card", "notes": "Marco",
    })
    assert response.status_code == 201
    payment = response.json()

    summary = client.get(f"{API}/table-sessions/{session_id}/summary").json()
    assert money(summary["paid"]) == Decimal("10.00")
    assert money(summary["remaining"]) == Decimal("14.00")
    assert summary["status"] == "open"

    payments = client.get(f"{API}/table-sessions/{session_id}/payments").json()
    assert [p["id"] for p in payments] == [payment["id"]]

    receipt = client.get(f"{API}/session-payments/{payment['id']}/receipt").json()
    assert receipt["receipt_number"].startswith("P-")
    assert money(receipt["total"]) == Decimal("10.00")
    assert receipt["shop_info"]["name"] == "Trattoria da Test"

    text = client.get(f"{API}/session-payments/{payment['id']}/receipt", params={"format": "text"})
    assert text.headers["content-type"].startswith("text/plain")
    assert "TOTAL:" in text.text


def test_overpay_rejected(client, session_id):
    response = client.post(f"{API}/table-sessions/{session_id}/payments", json={
        "amount": "50.00", "payment_method": "cash",
    })

    assert response.status_code == 409
    assert response.json()["error_code"] == "OVERPAY_REJECTED"
    assert client.get(f"{API}/table-sessions/{session_id}/payments").json() == []


def test_split_by_items(client, session_id):
    items = client.get(f"{API}/table-sessions/{session_id}/remaining-items").json()
    kebab = next(item for item in items if item["menu_item_name"] == "Kebab Classico")
    assert kebab["remaining_quantity"] == 2

    selection = {"items": [{"order_item_id": kebab["order_item_id"], "quantity": 1}]}
    preview = client.post(
        f"{API}/table-sessions/{session_id}/split/items", json={**selection, "preview": True}
    ).json()
    assert money(preview["amount"]) == Decimal("6.00")
    assert preview["payment"] is None

    result = client.post(f"{API}/table-sessions/{session_id}/split/items", json=selection).json()
    assert result["payment"]["paid_items"][0]["quantity"] == 1

    items = client.get(f"{API}/table-sessions/{session_id}/remaining-items").json()
    kebab = next(item for item in items if item["menu_item_name"] == "Kebab Classico")
    assert kebab["remaining_quantity"] == 1


def test_split_by_items_can_clear_notes(client, session_id):
    items = client.get(f"{API}/table-sessions/{session_id}/remaining-items").json()
    kebab = next(item for item in items if item["menu_item_name"] == "Kebab Classico")
    selection = {"items": [{"order_item_id": kebab["order_item_id"], "quantity": 1}]}

    described = client.post(
        f"{API}/table-sessions/{session_id}/split/items", json={**selection, "preview": True}
    ).json()
    result = client.post(
        f"{API}/table-sessions/{session_id}/split/items", json={**selection, "notes": None}
    ).json()

    assert described["notes"] == "1x Kebab Classico"
    assert result["notes"] is None
    assert result["payment"]["notes"] is None


def test_split_by_items_empty_selection(client, session_id):
    response = client.post(f"{API}/table-sessions/{session_id}/split/items", json={"items": []})

    assert response.status_code == 400


def test_equal_split_closes_session(client, session_id):
    preview = client.post(f"{API}/table-sessions/{session_id}/split/equal", json={
        "total_people": 3, "paying_people": 1, "tendered": "10.00", "preview": True,
    }).json()
    assert money(preview["amount"]) == Decimal("7.00")
    assert money(preview["change"]) == Decimal("3.00")

    result = client.post(f"{API}/table-sessions/{session_id}/split/equal", json={
        "total_people": 1, "paying_people": 1,
    }).json()
    assert money(result["payment"]["amount"]) == Decimal("21.00")

    session = client.get(f"{API}/table-sessions/{session_id}").json()
    assert session["status"] == "closed"
    assert session["closing_payment_method"] == "split"


def test_close_session(client, session_id, table):
    response = client.post(f"{API}/table-sessions/{session_id}/close", json={"method": "cash"})

    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    tables = client.get(f"{API}/tables/").json()
    assert tables[0]["status"] == "available"


def test_close_without_method(client, session_id):
    response = client.post(f"{API}/table-sessions/{session_id}/close", json={})

    assert response.status_code == 400
    assert response.json()["error_code"] == "PAYMENT_METHOD_REQUIRED"


def test_override_total(client, session_id):
    response = client.post(f"{API}/table-sessions/{session_id}/override-total", json={
        "total": "20.00", "reason": "Sconto cliente abituale",
    })

    assert response.status_code == 200
    assert money(response.json()["delta"]) == Decimal("-1.00")


def test_order_item_endpoints(client, session_id):
    orders_summary = client.get(f"{API}/table-sessions/{session_id}/remaining-items").json()
    order_id = orders_summary[0]["order_id"]

    response = client.post(f"{API}/orders/{order_id}/items", json={
        "menu_item_name": "Acqua", "price": "2.00",
    })
    assert response.status_code == 201
    item_id = response.json()["id"]

    response = client.patch(f"{API}/order-items/{item_id}", json={"quantity": 2})
    assert response.json()["quantity"] == 2
    assert money(client.get(f"{API}/table-sessions/{session_id}").json()["total"]) == Decimal("25.00")

    assert client.delete(f"{API}/order-items/{item_id}").status_code == 204
    assert money(client.get(f"{API}/table-sessions/{session_id}").json()["total"]) == Decimal("21.00")


def test_delete_session(client, session_id):
    assert client.delete(f"{API}/table-sessions/{session_id}").status_code == 204
    assert client.get(f"{API}/table-sessions/{session_id}").status_code == 404


def test_unknown_session(client):
    response = client.get(f"{API}/table-sessions/00000000-0000-0000-0000-000000000000/summary")

    assert response.status_code == 404
    assert response.json()["error_code"] == "SESSION_NOT_FOUND"


def test_refresh_socket(client):
    with client.websocket_connect("/ws/refresh") as websocket:
        assert websocket.receive_json()["type"] == "connection_confirmed"
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"
