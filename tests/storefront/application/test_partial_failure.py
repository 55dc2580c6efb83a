"""Tests for payment succeeding while order creation fails."""

import pytest
from storefront.backend.fake_adapter import DEFAULT_CATALOG
from storefront.checkout.session import CheckoutState
from storefront.payments.port import CardDetails

DRAGON = DEFAULT_CATALOG[0]
ADDRESS = {"full_name": "Aroha Smith", "shipping_option": "pickup"}
CARD = CardDetails(payment_method="pm_card_visa")


@pytest.fixture()
def paid_checkout(orchestrator, cart_store):
    cart_store.add_line(DRAGON, 2)
    orchestrator.begin()
    orchestrator.submit_email("aroha@example.com")
    orchestrator.submit_address(ADDRESS)
    return orchestrator


class TestOrderCreationFailsAfterPayment:
    def test_checkout_still_succeeds(self, paid_checkout, backend):
        backend.fail_orders(times=-1, status_code=500)
        session = paid_checkout.confirm_payment(CARD)
        assert session.current_state == CheckoutState.SUCCEEDED
        assert session.order_status == "payment_succeeded_order_pending"
        assert session.backend_order_id is None

    def test_cart_is_still_cleared(self, paid_checkout, backend, cart_store):
        backend.fail_orders(times=-1, status_code=500)
        paid_checkout.confirm_payment(CARD)
        assert cart_store.is_empty()

    def test_success_record_tells_shopper_to_contact_support(self, paid_checkout, backend, handoff):
        backend.fail_orders(times=-1, status_code=400)
        session = paid_checkout.confirm_payment(CARD)
        record = handoff.take_success()
        assert record["orderStatus"] == "payment_succeeded_order_pending"
        assert session.gateway_payment_id in record["message"]
        assert handoff.take_error() is None

    def test_unexpected_order_error_is_treated_the_same(self, paid_checkout, backend):
        def explode(request, idempotency_key):
            raise RuntimeError("bug")

        backend.create_order = explode
        session = paid_checkout.confirm_payment(CARD)
        assert session.current_state == CheckoutState.SUCCEEDED
        assert session.order_status == "payment_succeeded_order_pending"

    def test_transient_failure_is_retried_into_a_real_order(self, paid_checkout, backend):
        backend.fail_orders(times=2, status_code=502)
        session = paid_checkout.confirm_payment(CARD)
        assert session.order_status == "created"
        assert len(backend.orders) == 1

    def test_order_request_uses_session_snapshot(self, paid_checkout, backend, cart_store):
        cart_store.add_line(DEFAULT_CATALOG[2], 5)
        paid_checkout.confirm_payment(CARD)
        order_call = next(c for c in backend.calls if c["method"] == "create_order")
        assert [line["productId"] for line in order_call["payload"]["lines"]] == ["1"]
        assert order_call["payload"]["totalAmount"] == 3000
