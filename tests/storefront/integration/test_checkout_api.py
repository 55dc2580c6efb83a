"""Integration tests for checkout and handoff endpoints via TestClient."""

SHIP_ADDRESS = {
    "full_name": "Aroha Smith",
    "shipping_option": "ship",
    "address_line1": "12 Kauri Street",
    "city": "Wellington",
    "postal_code": "6011",
}


def _fill_cart(client, sid="s1"):
    client.post(f"/sessions/{sid}/cart/lines", json={"product_id": "1", "quantity": 2})
    client.post(f"/sessions/{sid}/cart/lines", json={"product_id": "2"})


def _to_payment(client, sid="s1"):
    _fill_cart(client, sid)
    client.post(f"/sessions/{sid}/checkout")
    client.post(f"/sessions/{sid}/checkout/email", json={"email": "aroha@example.com"})
    return client.post(f"/sessions/{sid}/checkout/address", json=SHIP_ADDRESS)


class TestCheckoutAPI:
    def test_begin_returns_201(self, client):
        _fill_cart(client)
        response = client.post("/sessions/s1/checkout")
        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "Review"
        assert body["amount"] == 4600

    def test_begin_with_empty_cart_returns_400(self, client):
        assert client.post("/sessions/s1/checkout").status_code == 400

    def test_get_without_checkout_returns_400(self, client):
        assert client.get("/sessions/s1/checkout").status_code == 400

    def test_invalid_email_reports_field_error(self, client):
        _fill_cart(client)
        client.post("/sessions/s1/checkout")
        response = client.post("/sessions/s1/checkout/email", json={"email": "nope"})
        assert response.status_code == 200
        assert response.json()["state"] == "Review"
        assert "customer_email" in response.json()["field_errors"]

    def test_address_reaches_payment_step(self, client):
        response = _to_payment(client)
        body = response.json()
        assert body["state"] == "Payment_Awaiting_Confirmation"
        assert body["order_id"].startswith("ORD-")

    def test_payment_out_of_order_returns_400(self, client):
        _fill_cart(client)
        client.post("/sessions/s1/checkout")
        response = client.post("/sessions/s1/checkout/payment", json={"payment_method": "pm_card_visa"})
        assert response.status_code == 400

    def test_successful_payment(self, client):
        _to_payment(client)
        response = client.post("/sessions/s1/checkout/payment", json={"payment_method": "pm_card_visa"})
        body = response.json()
        assert body["state"] == "Succeeded"
        assert body["order_status"] == "created"
        assert client.get("/sessions/s1/cart").json()["item_count"] == 0

        record = client.get("/sessions/s1/handoff/success")
        assert record.status_code == 200
        assert record.json()["orderId"] == body["order_id"]
        assert client.get("/sessions/s1/handoff/success").status_code == 404
        assert client.get("/sessions/s1/checkout").status_code == 400

    def test_declined_card_stays_on_payment_step(self, client):
        _to_payment(client)
        response = client.post("/sessions/s1/checkout/payment", json={"payment_method": "pm_card_chargeDeclined"})
        body = response.json()
        assert body["state"] == "Payment_Awaiting_Confirmation"
        assert body["field_errors"] == {"card": ["Your card was declined."]}
        assert client.get("/sessions/s1/cart").json()["item_count"] == 3

    def test_back_steps(self, client):
        _to_payment(client)
        assert client.post("/sessions/s1/checkout/back").json()["state"] == "Address_Capture"
        assert client.post("/sessions/s1/checkout/back").json()["state"] == "Review"

    def test_abandon(self, client):
        _fill_cart(client)
        client.post("/sessions/s1/checkout")
        assert client.delete("/sessions/s1/checkout").json() == {"status": "abandoned"}
        assert client.get("/sessions/s1/checkout").status_code == 400

    def test_busy_session_returns_409(self, client):
        from storefront.api.routes import get_shopper

        _fill_cart(client)
        client.post("/sessions/s1/checkout")
        get_shopper("s1").checkout.session.mark_busy()
        response = client.post("/sessions/s1/checkout/email", json={"email": "aroha@example.com"})
        assert response.status_code == 409


class TestFailureAPI:
    def test_intent_failure_then_recover(self, client):
        client.post("/storefront/fakes/configure", json={"intent_failure": "Payment service unavailable"})
        response = _to_payment(client)
        assert response.json()["state"] == "Failed"
        assert response.json()["failure_stage"] == "intent_creation"

        error = client.get("/sessions/s1/handoff/error").json()
        assert error["stage"] == "intent_creation"
        assert error["message"] == "Payment service unavailable"

        client.post("/storefront/fakes/configure", json={})
        recovered = client.post("/sessions/s1/checkout/recover").json()
        assert recovered["state"] == "Address_Capture"
        retried = client.post("/sessions/s1/checkout/address", json=SHIP_ADDRESS).json()
        assert retried["state"] == "Payment_Awaiting_Confirmation"

    def test_order_failure_after_payment_is_a_pending_success(self, client):
        client.post("/storefront/fakes/configure", json={"order_failures": -1, "order_failure_status": 400})
        _to_payment(client)
        body = client.post("/sessions/s1/checkout/payment", json={"payment_method": "pm_card_visa"}).json()
        assert body["state"] == "Succeeded"
        assert body["order_status"] == "payment_succeeded_order_pending"

        record = client.get("/sessions/s1/handoff/success").json()
        assert body["gateway_payment_id"] in record["message"]
        assert client.get("/sessions/s1/cart").json()["item_count"] == 0

    def test_configure_reports_state(self, client):
        response = client.post("/storefront/fakes/configure", json={"omit_client_secret": True})
        assert response.status_code == 200
        assert response.json()["backend"] == "FakeBackend"
        assert response.json()["omit_client_secret"] is True

    def test_configure_blocked_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/storefront/fakes/configure", json={})
        assert response.status_code == 403
