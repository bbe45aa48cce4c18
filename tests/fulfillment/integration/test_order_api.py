"""Integration tests for the order, customer and product endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fulfillment.api import customer_router, order_router, product_router, register_error_handlers

DAY = "2026-11-02"
ADDRESS = {
    "street": "12 Smith St",
    "suburb": "Fitzroy",
    "state": "VIC",
    "postcode": "3065",
    "zone": "north",
    "latitude": -37.7440,
    "longitude": 144.9650,
}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(customer_router)
    app.include_router(product_router)
    app.include_router(order_router)
    register_error_handlers(app)
    return TestClient(app)


def _customer(client, credit_limit=5000, approve=True):
    response = client.post(
        "/customers",
        json={"business_name": "Brunswick Deli", "email": "buy@brunswickdeli.com.au", "contact_name": "Ari"},
    )
    assert response.status_code == 201
    customer_id = response.json()["customer_id"]
    client.put(f"/customers/{customer_id}/onboarding/complete")
    if approve:
        response = client.put(
            f"/customers/{customer_id}/credit/approve",
            json={"credit_limit": credit_limit, "approved_by": "admin-1", "role": "admin"},
        )
        assert response.status_code == 200
    return customer_id


def _product(client, sku="TOM-1KG", unit_price=2500, stock=20):
    response = client.post("/products", json={"sku": sku, "name": "Tomatoes 1kg", "unit_price": unit_price, "tax_rate": 0})
    assert response.status_code == 201
    product_id = response.json()["product_id"]
    if stock:
        client.post(f"/products/{product_id}/receipts", json={"quantity": stock, "cost_per_unit": 1200})
    return product_id


def _order(client, customer_id, product_id, quantity=1, **overrides):
    body = {
        "customer_id": customer_id,
        "items": [{"product_id": product_id, "quantity": quantity}],
        "delivery_address": ADDRESS,
        "requested_delivery_date": DAY,
        "placed_by": "buyer-1",
    }
    body.update(overrides)
    return client.post("/orders", json=body)


class TestCustomerAPI:
    def test_credit_summary(self, client):
        customer_id = _customer(client, credit_limit=5000)
        product_id = _product(client)
        _order(client, customer_id, product_id, quantity=1)

        response = client.get(f"/customers/{customer_id}/credit")

        assert response.status_code == 200
        assert response.json() == {
            "customer_id": customer_id,
            "credit_limit": 5000,
            "outstanding": 2500,
            "available": 2500,
        }

    def test_second_approval_is_conflict(self, client):
        customer_id = _customer(client, credit_limit=500000)
        response = client.put(
            f"/customers/{customer_id}/credit/approve",
            json={"credit_limit": 800000, "approved_by": "admin-1", "role": "admin"},
        )
        assert response.status_code == 409
        assert client.get(f"/customers/{customer_id}").json()["credit_limit"] == 500000

    def test_suspending_twice_is_conflict(self, client):
        customer_id = _customer(client)
        assert client.put(f"/customers/{customer_id}/suspend", json={"reason": "Overdue"}).status_code == 200
        assert client.put(f"/customers/{customer_id}/suspend", json={"reason": "Overdue"}).status_code == 409

    def test_unknown_customer(self, client):
        assert client.get("/customers/missing").status_code == 404


class TestProductAPI:
    def test_adjust_below_zero_is_unprocessable(self, client):
        product_id = _product(client, stock=2)
        response = client.put(
            f"/products/{product_id}/adjust",
            json={"quantity_change": -5, "reason": "Spoiled", "adjusted_by": "wh-1"},
        )
        assert response.status_code == 422
        assert "stock" in response.json()["error"]

    def test_consuming_spent_batch_is_conflict(self, client):
        product_id = _product(client, stock=0)
        batch_id = client.post(f"/products/{product_id}/receipts", json={"quantity": 3}).json()["batch_id"]
        assert client.put(f"/products/{product_id}/batches/{batch_id}/consume", json={"quantity": 3}).status_code == 200
        response = client.put(f"/products/{product_id}/batches/{batch_id}/consume", json={"quantity": 1})
        assert response.status_code == 409


class TestOrderAPI:
    def test_place_order(self, client):
        customer_id = _customer(client)
        product_id = _product(client)

        response = _order(client, customer_id, product_id)

        assert response.status_code == 201
        order = client.get(f"/orders/{response.json()['order_id']}").json()
        assert order["status"] == "confirmed"
        assert order["order_number"] == "ORD-000001"

    def test_credit_exceeded_is_unprocessable(self, client):
        customer_id = _customer(client, credit_limit=5000)
        product_id = _product(client)
        response = _order(client, customer_id, product_id, quantity=3)
        assert response.status_code == 422
        assert "credit" in response.json()["error"]

    def test_bypass_by_sales_is_forbidden(self, client):
        customer_id = _customer(client, credit_limit=5000)
        product_id = _product(client)
        response = _order(
            client,
            customer_id,
            product_id,
            quantity=3,
            role="sales",
            bypass_credit_limit=True,
            bypass_reason="Regular customer",
        )
        assert response.status_code == 403

    def test_illegal_transition_is_conflict(self, client):
        customer_id = _customer(client)
        order_id = _order(client, customer_id, _product(client)).json()["order_id"]
        response = client.put(
            f"/orders/{order_id}/status",
            json={"status": "delivered", "changed_by": "admin-1", "role": "admin"},
        )
        assert response.status_code == 409
        assert client.get(f"/orders/{order_id}").json()["status"] == "confirmed"

    def test_short_rejection_reason_is_bad_request(self, client):
        customer_id = _customer(client, credit_limit=1_000_000)
        product_id = _product(client, stock=1)
        order_id = _order(client, customer_id, product_id, quantity=5).json()["order_id"]
        response = client.put(
            f"/orders/{order_id}/backorder/reject",
            json={"reason": "No", "rejected_by": "mgr-1", "role": "manager"},
        )
        assert response.status_code == 400

    def test_partial_backorder_approval(self, client):
        customer_id = _customer(client, credit_limit=1_000_000)
        product_id = _product(client, stock=2)
        order_id = _order(client, customer_id, product_id, quantity=5).json()["order_id"]

        response = client.put(
            f"/orders/{order_id}/backorder/approve",
            json={"approved_by": "mgr-1", "role": "manager", "approved_quantities": {product_id: 2}},
        )

        assert response.status_code == 200
        order = client.get(f"/orders/{order_id}").json()
        assert order["status"] == "confirmed"
        assert order["backorder_status"] == "partially_approved"
        assert order["totals"]["total"] == 5000

    def test_cancel(self, client):
        customer_id = _customer(client)
        product_id = _product(client, stock=10)
        order_id = _order(client, customer_id, product_id, quantity=2).json()["order_id"]

        response = client.put(
            f"/orders/{order_id}/cancel",
            json={"reason": "Ordered twice", "cancelled_by": "s-1", "role": "sales"},
        )

        assert response.status_code == 200
        assert client.get(f"/products/{product_id}").json()["current_stock"] == 10
        assert client.get(f"/customers/{customer_id}/credit").json()["outstanding"] == 0

    def test_unknown_order(self, client):
        assert client.get("/orders/missing").status_code == 404
