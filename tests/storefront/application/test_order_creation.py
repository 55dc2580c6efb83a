"""Tests for the OrderCreationAdapter: request shape, retries and idempotency."""

import pytest
from storefront.backend.fake_adapter import FakeBackend
from storefront.backend.port import BackendError
from storefront.checkout.order_creation import OrderCreationAdapter, OrderCreationFailed
from storefront.checkout.session import CheckoutSession

LINES = [
    {"product_id": "1", "title": "Dragon", "unit_price_minor_units": 1500, "quantity": 2, "image_ref": None},
]


def _paid_session():
    session = CheckoutSession.start(LINES)
    session.capture_email("aroha@example.com")
    session.capture_address(
        {
            "full_name": "Aroha Smith",
            "shipping_option": "ship",
            "address_line1": "12 Kauri Street",
            "city": "Wellington",
            "postal_code": "6011",
        }
    )
    session.record_payment_intent("pi_1_secret_x")
    session.record_payment_success("pi_1", 3000, "nzd")
    return session


def _adapter(backend, **kwargs):
    sleeps = []
    adapter = OrderCreationAdapter(backend, sleep=sleeps.append, **kwargs)
    return adapter, sleeps


class TestBuildRequest:
    def test_request_comes_from_session_snapshot(self):
        session = _paid_session()
        adapter, _ = _adapter(FakeBackend())
        request = adapter.build_request(session)
        assert request.payment_id == "pi_1"
        assert request.customer_email == "aroha@example.com"
        assert request.lines == LINES
        assert request.order_id == session.order_id
        assert request.total_amount == 3000
        assert request.shipping_address["postalCode"] == "6011"

    def test_payload_shape(self):
        session = _paid_session()
        adapter, _ = _adapter(FakeBackend())
        payload = adapter.build_request(session).to_payload()
        assert set(payload) == {
            "paymentId",
            "customerEmail",
            "lines",
            "shippingAddress",
            "orderId",
            "totalAmount",
        }
        assert payload["lines"][0] == {"productId": "1", "title": "Dragon", "price": 1500, "quantity": 2}


class TestSubmit:
    def test_creates_order_with_idempotency_key(self):
        session = _paid_session()
        backend = FakeBackend()
        adapter, _ = _adapter(backend)
        record = adapter.submit(session)
        assert record.item_count == 2
        assert backend.calls[-1]["idempotency_key"] == session.order_id

    def test_retries_server_errors_with_linear_backoff(self):
        session = _paid_session()
        backend = FakeBackend()
        backend.fail_orders(times=2, status_code=503)
        adapter, sleeps = _adapter(backend, retry_delay=0.5)
        record = adapter.submit(session)
        assert record is not None
        assert sleeps == [0.5, 1.0]
        assert len([c for c in backend.calls if c["method"] == "create_order"]) == 3

    def test_retries_transport_errors(self):
        session = _paid_session()
        backend = FakeBackend()
        backend.fail_orders(times=1, status_code=None)
        adapter, sleeps = _adapter(backend)
        adapter.submit(session)
        assert sleeps == [1.0]

    def test_gives_up_after_max_attempts(self):
        session = _paid_session()
        backend = FakeBackend()
        backend.fail_orders(times=-1, status_code=500)
        adapter, sleeps = _adapter(backend, max_attempts=3)
        with pytest.raises(OrderCreationFailed) as exc_info:
            adapter.submit(session)
        assert exc_info.value.attempts == 3
        assert len(sleeps) == 2

    def test_client_errors_are_not_retried(self):
        session = _paid_session()
        backend = FakeBackend()
        backend.fail_orders(times=-1, status_code=422)
        adapter, sleeps = _adapter(backend)
        with pytest.raises(OrderCreationFailed) as exc_info:
            adapter.submit(session)
        assert exc_info.value.status_code == 422
        assert sleeps == []

    def test_conflict_counts_as_created(self):
        session = _paid_session()
        backend = FakeBackend()
        backend.fail_orders(times=1, status_code=409)
        adapter, _ = _adapter(backend)
        record = adapter.submit(session)
        assert record.order_id == session.order_id
        assert record.item_count == 2

    def test_resubmission_returns_the_same_order(self):
        session = _paid_session()
        backend = FakeBackend()
        adapter, _ = _adapter(backend)
        first = adapter.submit(session)
        second = adapter.submit(session)
        assert first == second
        assert len(backend.orders) == 1


class TestRetryableErrors:
    @pytest.mark.parametrize("status_code, retryable", [(None, True), (500, True), (503, True), (400, False), (404, False)])
    def test_retryable(self, status_code, retryable):
        assert BackendError("x", status_code=status_code).retryable is retryable
