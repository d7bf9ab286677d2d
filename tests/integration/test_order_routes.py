"""Integration tests for order API endpoints."""

from unittest.mock import AsyncMock, MagicMock

import stripe
from fastapi.testclient import TestClient

CART_PAYLOAD = {
    "items": [{"productId": 7, "quantity": 2}],
    "shippingAddress": {"street": "Rua A, 1", "city": "Sao Paulo", "zip": "01000-000"},
    "shippingCost": "0.00",
    "paymentMethod": "pix",
}


def checkout_payload(**overrides) -> dict:
    return {**CART_PAYLOAD, **overrides}


class TestCreateOrder:
    """Tests for POST /api/v1/orders endpoint."""

    def test_pix_checkout_with_free_shipping(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        """Product 7 at 25.00 with stock 5, two units by pix, free shipping."""
        store.add_product(7, "25.00", 5)

        response = client.post("/api/v1/orders", json=CART_PAYLOAD, headers=buyer_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["subtotal"] == "50.00"
        assert data["discount"] == "2.50"
        assert data["shippingCost"] == "0.00"
        assert data["totalAmount"] == "47.50"
        assert data["status"] == "pending"
        assert data["paymentMethod"] == "pix"
        assert data["paymentDetails"]["paymentIntentId"] == "pi_test_pix_123"
        assert data["paymentDetails"]["qrCode"] == "00020101021226880014br.gov.bcb.pix"
        assert store.stock_of(7) == 3

        order = store.order(data["orderId"])
        assert order.status == "pending"
        assert order.payment_reference == "pi_test_pix_123"

        params = mock_stripe.PaymentIntent.create_async.call_args.kwargs
        assert params["amount"] == 4750
        assert params["metadata"] == {"reference_id": str(data["orderId"])}
        assert params["receipt_email"] == "buyer@example.com"

    def test_insufficient_stock_creates_nothing(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        """Same cart with stock 1 fails for product 7 and leaves stock at 1."""
        store.add_product(7, "25.00", 1)

        response = client.post("/api/v1/orders", json=CART_PAYLOAD, headers=buyer_headers)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "insufficient_stock"
        assert "product 7" in data["message"]
        assert data["details"][0]["loc"] == ["product_id", "7"]
        assert store.stock_of(7) == 1
        assert store.order_count() == 0
        mock_stripe.PaymentIntent.create_async.assert_not_called()

    def test_boleto_has_null_payment_details(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)

        response = client.post(
            "/api/v1/orders",
            json=checkout_payload(paymentMethod="boleto", shippingCost="12.50"),
            headers=buyer_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["paymentDetails"] is None
        assert data["discount"] == "0.00"
        assert data["totalAmount"] == "62.50"
        mock_stripe.PaymentIntent.create_async.assert_not_called()

    def test_card_checkout_returns_client_secret(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)
        mock_stripe.PaymentIntent.create_async.return_value = {
            "id": "pi_test_card_456",
            "status": "requires_payment_method",
            "client_secret": "pi_test_card_456_secret_def",
        }

        response = client.post(
            "/api/v1/orders",
            json=checkout_payload(paymentMethod="credit_card"),
            headers=buyer_headers,
        )

        assert response.status_code == 201
        assert response.json()["paymentDetails"]["clientSecret"] == "pi_test_card_456_secret_def"

    def test_gateway_failure_rolls_back(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)
        mock_stripe.PaymentIntent.create_async = AsyncMock(side_effect=stripe.APIConnectionError("network down"))

        response = client.post("/api/v1/orders", json=CART_PAYLOAD, headers=buyer_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "payment_gateway_error"
        assert store.stock_of(7) == 5
        assert store.order_count() == 0

    def test_unknown_product_returns_400(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        response = client.post(
            "/api/v1/orders",
            json=checkout_payload(items=[{"productId": 404, "quantity": 1}]),
            headers=buyer_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "product_not_found"
        assert "404" in response.json()["message"]

    def test_client_prices_are_ignored(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)

        response = client.post(
            "/api/v1/orders",
            json=checkout_payload(items=[{"productId": 7, "quantity": 1, "price": "0.01"}], paymentMethod="boleto"),
            headers=buyer_headers,
        )

        assert response.status_code == 201
        assert response.json()["subtotal"] == "25.00"

    def test_validation_errors_return_400(self, client: TestClient, buyer_headers: dict) -> None:
        cases = [
            checkout_payload(items=[]),
            checkout_payload(items=[{"productId": 7, "quantity": 0}]),
            checkout_payload(paymentMethod="bitcoin"),
            checkout_payload(shippingCost="-1.00"),
            checkout_payload(shippingAddress={}),
            {key: value for key, value in CART_PAYLOAD.items() if key != "shippingCost"},
        ]

        for payload in cases:
            response = client.post("/api/v1/orders", json=payload, headers=buyer_headers)
            assert response.status_code == 400, payload
            assert response.json()["error"] == "validation_error"
            assert response.json()["details"]

    def test_out_of_range_integers_return_400(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)
        cases = [
            [{"productId": 7, "quantity": 10**19}],
            [{"productId": 10**19, "quantity": 1}],
            [{"productId": 7, "quantity": 2_147_483_648}],
            [{"productId": 7, "quantity": 2_000_000_000}, {"productId": 7, "quantity": 2_000_000_000}],
        ]

        for items in cases:
            response = client.post("/api/v1/orders", json=checkout_payload(items=items), headers=buyer_headers)
            assert response.status_code == 400, items
            assert response.json()["error"] == "validation_error"

        assert store.stock_of(7) == 5
        assert store.order_count() == 0
        mock_stripe.PaymentIntent.create_async.assert_not_called()

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.post("/api/v1/orders", json=CART_PAYLOAD)

        assert response.status_code == 401

    def test_rate_limited(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock, monkeypatch
    ) -> None:
        from src.core.config import get_settings

        monkeypatch.setattr(get_settings(), "rate_limit_checkout_requests", 2)
        store.add_product(7, "25.00", 100)
        payload = checkout_payload(paymentMethod="boleto")

        assert client.post("/api/v1/orders", json=payload, headers=buyer_headers).status_code == 201
        assert client.post("/api/v1/orders", json=payload, headers=buyer_headers).status_code == 201
        response = client.post("/api/v1/orders", json=payload, headers=buyer_headers)

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert "Retry-After" in response.headers
        assert response.headers["X-RateLimit-Limit"] == "2"


class TestListOrders:
    """Tests for GET /api/v1/orders endpoint."""

    def test_returns_own_orders_newest_first(
        self, client: TestClient, store, buyer_headers: dict, other_buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 10)
        payload = checkout_payload(paymentMethod="boleto")
        first = client.post("/api/v1/orders", json=payload, headers=buyer_headers).json()["orderId"]
        second = client.post("/api/v1/orders", json=payload, headers=buyer_headers).json()["orderId"]
        client.post("/api/v1/orders", json=payload, headers=other_buyer_headers)

        response = client.get("/api/v1/orders", headers=buyer_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["id"] for item in items] == [second, first]
        assert items[0]["items"] == [
            {
                "productId": 7,
                "productName": "Product 7",
                "quantity": 2,
                "unitPrice": "25.00",
                "lineTotal": "50.00",
            }
        ]

    def test_returns_empty_list_when_no_orders(self, client: TestClient, buyer_headers: dict) -> None:
        response = client.get("/api/v1/orders", headers=buyer_headers)

        assert response.status_code == 200
        assert response.json() == {"items": []}


class TestGetOrder:
    """Tests for GET /api/v1/orders/{order_id} endpoint."""

    def test_returns_order_detail(
        self, client: TestClient, store, buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)
        order_id = client.post("/api/v1/orders", json=CART_PAYLOAD, headers=buyer_headers).json()["orderId"]

        response = client.get(f"/api/v1/orders/{order_id}", headers=buyer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == order_id
        assert data["totalAmount"] == "47.50"
        assert data["shippingAddress"]["city"] == "Sao Paulo"
        assert data["trackingCode"] is None
        assert "userId" not in data
        assert "paymentReference" not in data

    def test_other_users_order_is_not_found(
        self, client: TestClient, store, buyer_headers: dict, other_buyer_headers: dict, mock_stripe: MagicMock
    ) -> None:
        store.add_product(7, "25.00", 5)
        order_id = client.post("/api/v1/orders", json=CART_PAYLOAD, headers=buyer_headers).json()["orderId"]

        response = client.get(f"/api/v1/orders/{order_id}", headers=other_buyer_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_missing_order(self, client: TestClient, buyer_headers: dict) -> None:
        response = client.get("/api/v1/orders/999", headers=buyer_headers)

        assert response.status_code == 404
