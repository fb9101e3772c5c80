from decimal import Decimal

import pytest

from conftest import ADDRESS, auth_headers
from storefront.services.auth import Role


def order_body(*items, address=None):
    return {
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
        "shippingAddress": address or ADDRESS,
    }


def place(client, body, user_id=1):
    return client.post("/api/orders", json=body, headers=auth_headers(user_id))


class TestAuthentication:
    def test_list_requires_token(self, client):
        response = client.get("/api/orders")
        assert response.status_code == 401
        assert response.json()["message"] == "No token provided"

    def test_create_requires_token(self, client):
        response = client.post("/api/orders", json=order_body((1, 2)))
        assert response.status_code == 401

    def test_invalid_token_is_rejected(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"


class TestCreateOrder:
    def test_creates_order(self, client, notifier, make_product, stock_of):
        widget = make_product("Widget", "10.00", stock=5)

        response = place(client, order_body((widget, 2)))

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["userId"] == 1
        assert Decimal(data["total"]) == Decimal("20.00")
        assert data["shippingAddress"] == ADDRESS
        assert data["items"][0]["productId"] == widget
        assert data["items"][0]["product"]["name"] == "Widget"
        assert {"id", "createdAt", "statusUpdatedAt", "updatedAt"} <= data.keys()
        assert stock_of(widget) == 3

    def test_sends_confirmation_email(self, client, notifier, make_product):
        widget = make_product("Widget", "12.50", stock=5)

        data = place(client, order_body((widget, 2)), user_id=3).json()

        assert notifier.sent == [("user3@example.com", data["id"], Decimal("25.00"))]

    def test_notification_failure_does_not_fail_checkout(self, client, notifier, make_product):
        notifier.fail = True
        widget = make_product("Widget", "10.00", stock=5)

        response = place(client, order_body((widget, 1)))

        assert response.status_code == 201
        assert client.get(f"/api/orders/{response.json()['id']}", headers=auth_headers(1)).status_code == 200

    def test_unknown_product(self, client, notifier):
        response = place(client, order_body((99999, 1)))

        assert response.status_code == 400
        assert response.json()["message"] == "One or more products not found"

    def test_insufficient_stock_names_product(self, client, notifier, make_product, stock_of):
        widget = make_product("Widget", "10.00", stock=1)

        response = place(client, order_body((widget, 2)))

        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient stock for product: Widget"
        assert stock_of(widget) == 1

    def test_missing_city(self, client, notifier):
        address = {k: v for k, v in ADDRESS.items() if k != "city"}

        response = place(client, order_body((1, 1), address=address))

        assert response.status_code == 400
        assert "city" in response.json()["message"]

    @pytest.mark.parametrize("body", [
        {"items": [], "shippingAddress": ADDRESS},
        {"items": [{"productId": -1, "quantity": 0}], "shippingAddress": {"street": "123 Test St"}},
        {"items": [{"productId": 1, "quantity": 0}], "shippingAddress": ADDRESS},
        {"shippingAddress": ADDRESS},
    ])
    def test_malformed_body(self, client, notifier, body):
        response = place(client, body)

        assert response.status_code == 400
        assert response.json()["message"]


class TestListOrders:
    def test_empty(self, client):
        response = client.get("/api/orders", headers=auth_headers(1))

        assert response.status_code == 200
        assert response.json() == {"items": [], "page": 1, "limit": 10, "totalPages": 0, "totalCount": 0}

    def test_pages_are_disjoint_and_newest_first(self, client, notifier, make_product):
        widget = make_product("Widget", "1.00", stock=100)
        created = [place(client, order_body((widget, 1))).json()["id"] for _ in range(12)]

        first = client.get("/api/orders?page=1&limit=10", headers=auth_headers(1)).json()
        second = client.get("/api/orders?page=2&limit=10", headers=auth_headers(1)).json()

        assert first["totalCount"] == 12
        assert first["totalPages"] == 2
        assert len(first["items"]) == 10
        assert len(second["items"]) == 2

        ids = [o["id"] for o in first["items"] + second["items"]]
        assert ids == list(reversed(created))

        timestamps = [o["createdAt"] for o in first["items"] + second["items"]]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_only_own_orders(self, client, notifier, make_product):
        widget = make_product("Widget", "1.00", stock=10)
        place(client, order_body((widget, 1)), user_id=1)
        place(client, order_body((widget, 1)), user_id=2)

        data = client.get("/api/orders", headers=auth_headers(2)).json()

        assert data["totalCount"] == 1
        assert all(o["userId"] == 2 for o in data["items"])

    def test_rejects_bad_paging(self, client):
        assert client.get("/api/orders?page=0", headers=auth_headers(1)).status_code == 400
        assert client.get("/api/orders?limit=0", headers=auth_headers(1)).status_code == 400


class TestGetOrder:
    def test_includes_items_and_products(self, client, notifier, make_product):
        widget = make_product("Widget", "3.00", stock=10)
        gadget = make_product("Gadget", "4.00", stock=10)
        order_id = place(client, order_body((widget, 1), (gadget, 2))).json()["id"]

        response = client.get(f"/api/orders/{order_id}", headers=auth_headers(1))

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total"]) == Decimal("11.00")
        assert [i["product"]["name"] for i in data["items"]] == ["Widget", "Gadget"]

    def test_other_users_order_is_not_found(self, client, notifier, make_product):
        widget = make_product("Widget", "3.00", stock=10)
        order_id = place(client, order_body((widget, 1)), user_id=1).json()["id"]

        response = client.get(f"/api/orders/{order_id}", headers=auth_headers(2))

        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"

    def test_unknown_order(self, client):
        response = client.get("/api/orders/00000000-0000-0000-0000-000000000000", headers=auth_headers(1))
        assert response.status_code == 404


class TestOrderLifecycle:
    def test_customer_cancels_and_stock_returns(self, client, notifier, make_product, stock_of):
        widget = make_product("Widget", "3.00", stock=5)
        order_id = place(client, order_body((widget, 4))).json()["id"]
        assert stock_of(widget) == 1

        response = client.post(f"/api/orders/{order_id}/cancel", headers=auth_headers(1))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert stock_of(widget) == 5

        again = client.post(f"/api/orders/{order_id}/cancel", headers=auth_headers(1))
        assert again.status_code == 409
        assert stock_of(widget) == 5

    def test_cannot_cancel_someone_elses_order(self, client, notifier, make_product):
        widget = make_product("Widget", "3.00", stock=5)
        order_id = place(client, order_body((widget, 1)), user_id=1).json()["id"]

        response = client.post(f"/api/orders/{order_id}/cancel", headers=auth_headers(2))

        assert response.status_code == 404

    def test_status_update_needs_admin(self, client, notifier, make_product):
        widget = make_product("Widget", "3.00", stock=5)
        order_id = place(client, order_body((widget, 1))).json()["id"]

        response = client.patch(
            f"/api/orders/{order_id}/status", json={"status": "processing"}, headers=auth_headers(1)
        )

        assert response.status_code == 403

    def test_admin_moves_order_forward_only(self, client, notifier, make_product):
        widget = make_product("Widget", "3.00", stock=5)
        order_id = place(client, order_body((widget, 1))).json()["id"]
        admin = auth_headers(99, role=Role.ADMIN)

        processing = client.patch(f"/api/orders/{order_id}/status", json={"status": "processing"}, headers=admin)
        assert processing.status_code == 200
        assert processing.json()["status"] == "processing"

        backwards = client.patch(f"/api/orders/{order_id}/status", json={"status": "pending"}, headers=admin)
        assert backwards.status_code == 409

        completed = client.patch(f"/api/orders/{order_id}/status", json={"status": "completed"}, headers=admin)
        assert completed.json()["status"] == "completed"

        cancelled = client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin)
        assert cancelled.status_code == 409


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ready(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


@pytest.mark.parametrize("path, method, status_code", [
    ("/api/orders", "post", "409"),
    ("/api/orders", "post", "503"),
    ("/api/orders", "get", "401"),
    ("/api/orders/{order_id}", "get", "404"),
    ("/api/orders/{order_id}/cancel", "post", "409"),
    ("/api/orders/{order_id}/status", "patch", "403"),
])
def test_error_responses_use_message_schema(client, path, method, status_code):
    responses = client.get("/openapi.json").json()["paths"][path][method]["responses"]

    schema = responses[status_code]["content"]["application/json"]["schema"]
    assert schema == {"$ref": "#/components/schemas/MessageResponse"}
