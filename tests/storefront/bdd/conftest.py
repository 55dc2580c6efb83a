"""Shared BDD fixtures and step definitions for the Storefront."""

import pytest
from pytest_bdd import given, parsers, then, when
from storefront.backend.fake_adapter import DEFAULT_CATALOG
from storefront.cart.persistence import CartPersistence
from storefront.cart.store import CartStore
from storefront.payments.port import CardDetails

_PRODUCTS_BY_TITLE = {product.title: product for product in DEFAULT_CATALOG}

SHOPPER_EMAIL = "aroha@example.com"
SHIP_ADDRESS = {
    "full_name": "Aroha Smith",
    "shipping_option": "ship",
    "address_line1": "12 Kauri Street",
    "city": "Wellington",
    "postal_code": "6011",
}


@pytest.fixture()
def checkout():
    """Container for the session the steps are driving."""
    return {"session": None}


# ---------------------------------------------------------------------------
# Cart Given steps
# ---------------------------------------------------------------------------
@given("an empty cart")
def _empty_cart(cart_store):
    assert cart_store.is_empty()


@given(parsers.cfparse('a cart with {first_qty:d} "{first}" and {second_qty:d} "{second}"'))
def _filled_cart(cart_store, first_qty, first, second_qty, second):
    cart_store.add_line(_PRODUCTS_BY_TITLE[first], first_qty)
    cart_store.add_line(_PRODUCTS_BY_TITLE[second], second_qty)


@given("cart storage is failing")
def _storage_failing(slots):
    slots.configure(fail_writes=True)


# ---------------------------------------------------------------------------
# Cart When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('{quantity:d} "{title}" is added to the cart'))
@when(parsers.cfparse('{quantity:d} "{title}" are added to the cart'))
def _add_to_cart(cart_store, quantity, title):
    cart_store.add_line(_PRODUCTS_BY_TITLE[title], quantity)


@when(parsers.cfparse('the quantity of "{title}" is set to {quantity:d}'))
def _set_quantity(cart_store, title, quantity):
    cart_store.set_quantity(_PRODUCTS_BY_TITLE[title].id, quantity)


@when("the cart is cleared")
def _clear_cart(cart_store):
    cart_store.clear()


@when("the storefront is reloaded", target_fixture="cart_store")
def _reload(slots):
    return CartStore(CartPersistence(slots))


# ---------------------------------------------------------------------------
# Cart Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart total is {total:d}"))
def _cart_total(cart_store, total):
    assert cart_store.total() == total


@then(parsers.cfparse("the cart holds {count:d} items"))
def _cart_item_count(cart_store, count):
    assert cart_store.item_count() == count


@then(parsers.cfparse("the cart has {count:d} line"))
def _cart_line_count(cart_store, count):
    assert len(cart_store.lines()) == count


@then("the cart is empty")
def _cart_empty(cart_store):
    assert cart_store.is_empty()


@then(parsers.cfparse("{count:d} persistence failure is recorded"))
def _persistence_failures(cart_store, count):
    assert cart_store.persistence_failures == count


# ---------------------------------------------------------------------------
# Checkout Given steps
# ---------------------------------------------------------------------------
@given("checkout has begun")
def _checkout_begun(orchestrator, checkout):
    checkout["session"] = orchestrator.begin()


@given("the shopper is on the payment step")
def _on_payment_step(orchestrator, checkout):
    orchestrator.submit_email(SHOPPER_EMAIL)
    checkout["session"] = orchestrator.submit_address(SHIP_ADDRESS)


@given("the order service is down")
def _order_service_down(backend):
    backend.fail_orders(times=-1, status_code=500)


@given("payment setup is failing")
def _payment_setup_failing(backend):
    backend.fail_intents("Payment service unavailable", status_code=503)


# ---------------------------------------------------------------------------
# Checkout When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the shopper enters the email "{email}"'))
def _enter_email(orchestrator, checkout, email):
    checkout["session"] = orchestrator.submit_email(email)


@when(parsers.cfparse('the shopper chooses pickup as "{full_name}"'))
def _choose_pickup(orchestrator, checkout, full_name):
    checkout["session"] = orchestrator.submit_address({"full_name": full_name, "shipping_option": "pickup"})


@when(parsers.cfparse('the shopper asks for shipping to postal code "{postal_code}"'))
def _ship_to(orchestrator, checkout, postal_code):
    checkout["session"] = orchestrator.submit_address({**SHIP_ADDRESS, "postal_code": postal_code})


@when(parsers.cfparse('the shopper pays with "{payment_method}"'))
def _pay(orchestrator, checkout, payment_method):
    checkout["session"] = orchestrator.confirm_payment(CardDetails(payment_method=payment_method))


@when("payment setup recovers")
def _payment_setup_recovers(backend):
    backend.intent_failure = None


@when("the shopper recovers the checkout")
def _recover(orchestrator, checkout):
    checkout["session"] = orchestrator.recover()


# ---------------------------------------------------------------------------
# Checkout Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the checkout state is "{state}"'))
def _checkout_state(checkout, state):
    assert checkout["session"].state == state


@then(parsers.cfparse('the field "{field}" has an error'))
def _field_error(checkout, field):
    assert field in checkout["session"].errors()


@then(parsers.cfparse('the order status is "{status}"'))
def _order_status(checkout, status):
    assert checkout["session"].order_status == status


@then("the payment intent amount equals the cart total")
def _intent_amount(backend, cart_store):
    intent_calls = [call for call in backend.calls if call["method"] == "create_payment_intent"]
    assert intent_calls[-1]["payload"]["amount"] == cart_store.total()


@then("both attempts used the same client secret")
def _same_client_secret(confirmer, checkout):
    secrets = {call["client_secret"] for call in confirmer.calls if call["method"] == "confirm"}
    assert secrets == {checkout["session"].payment_client_secret}


@then("the shopper is told to contact support")
def _contact_support(checkout, handoff):
    session = checkout["session"]
    assert session.gateway_payment_id in session.support_message()
    record = handoff.take_success()
    assert record["message"] == session.support_message()


@then("a payment success record is waiting")
def _success_record(handoff, checkout):
    record = handoff.take_success()
    assert record["orderId"] == checkout["session"].order_id


@then("a payment error record is waiting")
def _error_record(handoff):
    assert handoff.take_error() is not None
