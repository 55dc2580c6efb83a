"""Storefront load test scenarios.

Stateful SequentialTaskSet journeys covering cart browsing and abandonment,
the happy-path checkout, and a declined card followed by a retry. Each
journey runs under its own session id, so carts never collide.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    add_line_data,
    address_data,
    custom_line_data,
    declined_payment_data,
    payment_data,
    session_id,
    shipping_address,
    valid_email,
)
from loadtests.helpers.response import checkout_problem, extract_error_detail
from loadtests.helpers.state import CartState, CheckoutState


class CartBrowsingJourney(SequentialTaskSet):
    """Browse catalog -> Add Lines -> Change Quantity -> Remove Line -> Clear.

    Models a browsing shopper who fills a cart, changes their mind and
    walks away.
    """

    def on_start(self):
        self.state = CartState(session_id=session_id())

    @task
    def browse_catalog(self):
        with self.client.get("/products", catch_response=True, name="GET /products") as resp:
            if resp.status_code != 200:
                resp.failure(f"List products failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def add_catalog_line(self):
        self._add_line(add_line_data())

    @task
    def add_custom_line(self):
        self._add_line(custom_line_data())

    @task
    def set_quantity(self):
        with self.client.put(
            f"/sessions/{self.state.session_id}/cart/lines/1",
            json={"quantity": 4},
            catch_response=True,
            name="PUT /sessions/{id}/cart/lines/{product_id}",
        ) as resp:
            if resp.status_code == 200:
                self.state.item_count = resp.json()["item_count"]
            else:
                resp.failure(f"Set quantity failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def remove_line(self):
        with self.client.delete(
            f"/sessions/{self.state.session_id}/cart/lines/1",
            catch_response=True,
            name="DELETE /sessions/{id}/cart/lines/{product_id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Remove line failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def clear_cart(self):
        with self.client.delete(
            f"/sessions/{self.state.session_id}/cart",
            catch_response=True,
            name="DELETE /sessions/{id}/cart",
        ) as resp:
            if resp.status_code != 200 or resp.json()["item_count"] != 0:
                resp.failure(f"Clear cart failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()

    def _add_line(self, payload):
        with self.client.post(
            f"/sessions/{self.state.session_id}/cart/lines",
            json=payload,
            catch_response=True,
            name="POST /sessions/{id}/cart/lines",
        ) as resp:
            if resp.status_code == 200:
                body = resp.json()
                self.state.item_count = body["item_count"]
                self.state.total = body["total"]
            else:
                resp.failure(f"Add line failed: {resp.status_code} — {extract_error_detail(resp)}")


class _CheckoutJourney(SequentialTaskSet):
    """Shared steps for journeys that fill a cart and walk it to the payment step."""

    def on_start(self):
        self.state = CheckoutState(session_id=session_id())

    def _url(self, path: str = "") -> str:
        return f"/sessions/{self.state.session_id}{path}"

    def _post(self, path: str, name: str, payload=None, expected=200):
        with self.client.post(self._url(path), json=payload, catch_response=True, name=name) as resp:
            if resp.status_code != expected:
                resp.failure(f"{name} failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()
            body = resp.json()
            if body.get("state") == "Failed":
                resp.failure(f"{name}: {checkout_problem(body)}")
            if "state" in body:
                self.state.checkout_state = body["state"]
                self.state.order_id = body.get("order_id")
                self.state.amount = body.get("amount", 0)
                self.state.payment_attempts = body.get("payment_attempts", 0)
            return body

    def fill_cart(self):
        for _ in range(2):
            self._post("/cart/lines", "POST /sessions/{id}/cart/lines", add_line_data())

    def begin(self):
        self._post("/checkout", "POST /sessions/{id}/checkout", expected=201)

    def submit_email(self):
        self._post("/checkout/email", "POST /sessions/{id}/checkout/email", {"email": valid_email()})

    def expect_state(self, state: str):
        if self.state.checkout_state != state:
            self.interrupt()


class CheckoutSuccessJourney(_CheckoutJourney):
    """Fill Cart -> Begin -> Email -> Address -> Pay -> Take Success Record.

    The happy path from a full cart to a recorded order.
    """

    @task
    def prepare(self):
        self.fill_cart()
        self.begin()
        self.submit_email()

    @task
    def submit_address(self):
        self._post("/checkout/address", "POST /sessions/{id}/checkout/address", address_data())
        self.expect_state("Payment_Awaiting_Confirmation")

    @task
    def pay(self):
        self._post("/checkout/payment", "POST /sessions/{id}/checkout/payment", payment_data())
        self.expect_state("Succeeded")

    @task
    def take_success_record(self):
        with self.client.get(
            self._url("/handoff/success"),
            catch_response=True,
            name="GET /sessions/{id}/handoff/success",
        ) as resp:
            if resp.status_code != 200 or resp.json().get("orderId") != self.state.order_id:
                resp.failure(f"Success record missing: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class DeclinedCardRetryJourney(_CheckoutJourney):
    """Fill Cart -> Begin -> Email -> Address -> Declined Card -> Retry -> Success.

    The shopper stays on the payment step after a decline and pays with a
    second card against the same payment intent.
    """

    @task
    def prepare(self):
        self.fill_cart()
        self.begin()
        self.submit_email()

    @task
    def submit_address(self):
        self._post("/checkout/address", "POST /sessions/{id}/checkout/address", shipping_address())
        self.expect_state("Payment_Awaiting_Confirmation")

    @task
    def pay_with_declined_card(self):
        self._post("/checkout/payment", "POST /sessions/{id}/checkout/payment", declined_payment_data())
        self.expect_state("Payment_Awaiting_Confirmation")

    @task
    def retry_with_good_card(self):
        self._post("/checkout/payment", "POST /sessions/{id}/checkout/payment", payment_data())
        if self.state.payment_attempts != 2:
            self.interrupt()

    @task
    def done(self):
        self.interrupt()


class StorefrontUser(HttpUser):
    """Locust user simulating storefront shoppers.

    Weighted distribution:
    - 50% Cart browsing and abandonment
    - 35% Checkout happy path
    - 15% Declined card with retry
    """

    wait_time = between(0.5, 2.0)
    tasks = {
        CartBrowsingJourney: 10,
        CheckoutSuccessJourney: 7,
        DeclinedCardRetryJourney: 3,
    }
