"""HTTP surface of the order core."""

import pytest
from fastapi.testclient import TestClient

from app.core.auth import require_user
from app.database import get_engine
from app.main import app

from conftest import FakeGateway

CART = [
    {
        "item_id": "veg-onion",
        "name": "Onion",
        "unit_price": 40,
        "quantity": 12,
        "image_ref": "/images/onion.jpg",
        "unit_label": "kg",
    }
]

CHECKOUT = {
    "phone": "9876543210",
    "delivery_address": "12 Car Street",
    "city": "Tirunelveli",
    "pincode": "627001",
    "items": CART,
}


@pytest.fixture
def client(engine, customer):
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[require_user] = lambda: customer
    yield TestClient(app)
    app.dependency_overrides.clear()
    if hasattr(app.state, "payment_gateway"):
        del app.state.payment_gateway


@pytest.fixture
def installed_gateway(client) -> FakeGateway:
    gateway = FakeGateway()
    app.state.payment_gateway = gateway
    return gateway


def test_health(client) -> None:
    assert client.get("/").json()["status"] == "ok"


def test_cod_checkout(client, customer) -> None:
    res = client.post("/api/v1/orders/checkout", json=CHECKOUT)

    assert res.status_code == 201
    body = res.json()
    assert body["subtotal"] == 480
    assert body["delivery_fee"] == 50
    assert body["total_amount"] == 530
    assert body["payment_method"] == "cod"
    assert body["payment_status"] == "pending"
    assert body["order_status"] == "placed"
    assert body["gateway_order_ref"] is None
    assert body["customer_name"] == customer.name
    assert body["items"][0]["name"] == "Onion"


def test_checkout_rejects_empty_cart(client) -> None:
    res = client.post("/api/v1/orders/checkout", json={**CHECKOUT, "items": []})

    assert res.status_code == 422


def test_online_checkout_without_gateway(client) -> None:
    res = client.post("/api/v1/orders/checkout/online", json=CHECKOUT)

    assert res.status_code == 502
    assert res.json()["code"] == "GATEWAY_UNAVAILABLE"
    assert client.get("/api/v1/orders/me").json() == []


def test_online_checkout_then_paid(client, installed_gateway) -> None:
    res = client.post("/api/v1/orders/checkout/online", json=CHECKOUT)

    assert res.status_code == 201
    pending = res.json()
    assert pending["amount"] == 53000
    assert pending["currency"] == "INR"
    assert pending["gateway_order_ref"] == "order_test_1"
    assert pending["prefill"]["contact"] == "9876543210"

    res = client.post(
        f"/api/v1/orders/{pending['order_id']}/payment",
        json={"status": "paid", "gateway_payment_ref": "pay_abc"},
    )

    assert res.status_code == 200
    assert res.json()["payment_status"] == "paid"
    assert res.json()["gateway_payment_ref"] == "pay_abc"


def test_paid_without_reference_is_rejected(client, installed_gateway) -> None:
    pending = client.post("/api/v1/orders/checkout/online", json=CHECKOUT).json()

    res = client.post(
        f"/api/v1/orders/{pending['order_id']}/payment",
        json={"status": "paid"},
    )

    assert res.status_code == 422


def test_dismissed_payment_keeps_order_pending(client, installed_gateway) -> None:
    pending = client.post("/api/v1/orders/checkout/online", json=CHECKOUT).json()

    res = client.post(
        f"/api/v1/orders/{pending['order_id']}/payment",
        json={"status": "dismissed"},
    )

    assert res.status_code == 409
    assert res.json()["detail"] == "Payment cancelled. Please try again."
    tracked = client.get(f"/api/v1/orders/track/{pending['order_number']}").json()
    assert tracked["payment_status"] == "pending"


def test_list_and_cancel(client) -> None:
    first = client.post("/api/v1/orders/checkout", json=CHECKOUT).json()
    second = client.post("/api/v1/orders/checkout", json=CHECKOUT).json()

    listed = client.get("/api/v1/orders/me").json()
    assert [o["id"] for o in listed] == [second["id"], first["id"]]

    res = client.post(f"/api/v1/orders/{first['id']}/cancel")
    assert res.status_code == 200
    assert res.json()["order_status"] == "cancelled"

    res = client.post(f"/api/v1/orders/{first['id']}/cancel")
    assert res.status_code == 409
    assert res.json()["code"] == "INVALID_TRANSITION"


def test_track_by_number_and_id(client) -> None:
    order = client.post("/api/v1/orders/checkout", json=CHECKOUT).json()

    by_number = client.get(f"/api/v1/orders/track/{order['order_number']}")
    by_id = client.get(f"/api/v1/orders/track/{order['id']}")

    assert by_number.status_code == 200
    assert by_id.json()["id"] == order["id"]
    assert by_number.json()["status_label"] == "Order Placed"
    assert by_number.json()["timeline"][0]["active"] is True
    assert by_number.json()["can_cancel"] is True


def test_track_unknown_order(client) -> None:
    res = client.get("/api/v1/orders/track/NVS000000")

    assert res.status_code == 404
    assert res.json()["detail"] == "Order not found. Please check your order ID or number."


def test_track_blank_token_is_not_found(client) -> None:
    res = client.get("/api/v1/orders/track/%20")

    assert res.status_code == 404
    assert res.json()["code"] == "ORDER_NOT_FOUND"


def test_replayed_paid_report_keeps_first_reference(client, installed_gateway) -> None:
    pending = client.post("/api/v1/orders/checkout/online", json=CHECKOUT).json()
    url = f"/api/v1/orders/{pending['order_id']}/payment"

    client.post(url, json={"status": "paid", "gateway_payment_ref": "pay_first"})
    res = client.post(url, json={"status": "paid", "gateway_payment_ref": "pay_second"})

    assert res.status_code == 200
    assert res.json()["gateway_payment_ref"] == "pay_first"
