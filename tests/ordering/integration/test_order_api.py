"""Integration tests for Order, Coupon and Stock API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import coupon_router, order_router, stock_router
from ordering.order.order import Order
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(stock_router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def ready_cart(shop):
    shop.add_product("MATCHA-100", price=250_000.0, stock=10, name="Uji Matcha 100g")
    shop.add_address("cust-api-001")
    shop.add_coupon("SAKURA10", 10, max_discount_amount=40_000.0)
    shop.fill_cart("cust-api-001", ("MATCHA-100", 2))
    return shop


def _place(client, **overrides):
    body = {"customer_id": "cust-api-001", "shipping_address_id": "addr-001", "coupon_code": "SAKURA10"}
    body.update(overrides)
    return client.post("/orders", json=body)


class TestPlaceOrder:
    def test_place_order_returns_201(self, client, ready_cart):
        response = _place(client)
        assert response.status_code == 201

        data = response.json()
        assert data["order_number"] == 1
        assert data["status"] == "Pending"
        assert data["payment_status"] == "Pending"
        assert data["subtotal"] == 500_000.0
        assert data["discount_amount"] == 40_000.0
        assert data["shipping_fee"] == 30_000.0
        assert data["total_amount"] == 490_000.0
        assert data["items"][0]["sku"] == "MATCHA-100"
        assert data["status_history"][0]["note"] == "Order created successfully"

    def test_empty_cart_returns_400(self, client, shop):
        shop.add_address("cust-api-001")
        response = _place(client, coupon_code=None)
        assert response.status_code == 400

    def test_invalid_coupon_returns_400(self, client, ready_cart):
        response = _place(client, coupon_code="NOPE")
        assert response.status_code == 400
        assert current_domain.repository_for(Order)._dao.query.all().items == []

    def test_missing_fields_returns_422(self, client):
        response = client.post("/orders", json={"customer_id": "cust-api-001"})
        assert response.status_code == 422


class TestOrderEndpoints:
    def test_get_order(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        response = client.get(f"/orders/{order_id}")
        assert response.status_code == 200
        assert response.json()["order_id"] == order_id

    def test_get_missing_order_returns_404(self, client):
        response = client.get("/orders/does-not-exist")
        assert response.status_code == 404

    def test_update_status(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "Confirmed"})
        assert response.status_code == 200
        assert response.json()["status"] == "Confirmed"

    def test_illegal_transition_returns_400(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "Delivered"})
        assert response.status_code == 400
        assert client.get(f"/orders/{order_id}").json()["status"] == "Pending"

    def test_cancel(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Wrong size"})
        assert response.status_code == 200
        assert response.json()["status"] == "Cancelled"
        assert client.get("/stock/MATCHA-100").json()["stock"] == 10

    def test_list_orders_for_customer(self, client, ready_cart):
        first = _place(client).json()
        ready_cart.fill_cart("cust-api-001", ("MATCHA-100", 1))
        second = _place(client, coupon_code=None).json()

        response = client.get("/orders", params={"customer_id": "cust-api-001"})
        assert response.status_code == 200
        orders = response.json()
        assert [o["order_number"] for o in orders] == [second["order_number"], first["order_number"]]
        assert orders[1]["item_count"] == 2
        assert orders[1]["total_amount"] == 490_000.0

    def test_list_orders_requires_customer(self, client):
        assert client.get("/orders").status_code == 422

    def test_list_orders_for_unknown_customer_is_empty(self, client):
        response = client.get("/orders", params={"customer_id": "nobody"})
        assert response.status_code == 200
        assert response.json() == []

    def test_status_history(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        client.put(f"/orders/{order_id}/status", json={"status": "Confirmed", "note": "Checked by staff"})

        response = client.get(f"/orders/{order_id}/status-history")
        assert response.status_code == 200
        history = response.json()
        assert [h["new_status"] for h in history] == ["Pending", "Confirmed"]
        assert history[1]["note"] == "Checked by staff"

    def test_status_history_for_missing_order_returns_404(self, client):
        assert client.get("/orders/does-not-exist/status-history").status_code == 404

    def test_return_delivered_order(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        for status in ("Confirmed", "Processing", "Packed", "Shipped", "Delivered"):
            client.put(f"/orders/{order_id}/status", json={"status": status})

        response = client.post(f"/orders/{order_id}/return", json={"reason": "Damaged tin"})
        assert response.status_code == 200
        assert response.json()["status"] == "Returned"

        history = client.get(f"/orders/{order_id}/status-history").json()
        assert history[-1]["note"] == "Return requested: Damaged tin"

    def test_return_undelivered_order_returns_400(self, client, ready_cart):
        order_id = _place(client).json()["order_id"]
        response = client.post(f"/orders/{order_id}/return", json={})
        assert response.status_code == 400
        assert client.get(f"/orders/{order_id}").json()["status"] == "Pending"


class TestCouponEndpoints:
    def test_create_coupon(self, client):
        response = client.post(
            "/coupons",
            json={
                "code": "tet2025",
                "discount_type": "Fixed",
                "value": 50_000,
                "start_date": "2025-01-01T00:00:00Z",
                "end_date": "2099-02-01T00:00:00Z",
                "usage_limit": 100,
            },
        )
        assert response.status_code == 201
        assert response.json()["code"] == "TET2025"
        assert response.json()["used_count"] == 0

    def test_validate_coupon(self, client, ready_cart):
        response = client.post("/coupons/validate", json={"code": "sakura10", "order_amount": 500_000})
        assert response.status_code == 200
        assert response.json() == {
            "is_valid": True,
            "message": "Coupon applied",
            "code": "SAKURA10",
            "discount": 40_000.0,
        }

    def test_toggle_coupon(self, client, ready_cart):
        response = client.put("/coupons/SAKURA10/toggle", json={"is_active": False})
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        validation = client.post("/coupons/validate", json={"code": "SAKURA10", "order_amount": 500_000}).json()
        assert validation["is_valid"] is False
        assert validation["message"] == "Coupon is not active"


class TestStockEndpoints:
    def test_register_and_read_stock(self, client):
        response = client.post("/stock", json={"sku": "YUZU-50", "stock": 4})
        assert response.status_code == 201
        assert response.json()["stock"] == 4

        assert client.get("/stock/YUZU-50").json()["is_out_of_stock"] is False

    def test_set_stock(self, client):
        client.post("/stock", json={"sku": "YUZU-50", "stock": 4})
        response = client.put("/stock/YUZU-50", json={"stock": 0})
        assert response.status_code == 200
        assert response.json()["is_out_of_stock"] is True

    def test_unknown_sku_returns_404(self, client):
        assert client.get("/stock/NOPE").status_code == 404
