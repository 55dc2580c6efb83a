"""Domain events for the CheckoutSession aggregate."""

from protean.fields import Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="CheckoutSession")
class CheckoutStarted:
    """A shopper began checking out the current cart."""

    __version__ = 1

    session_id = Identifier(required=True)
    amount = Integer(required=True)
    line_count = Integer(required=True)


@storefront.event(part_of="CheckoutSession")
class EmailCaptured:
    __version__ = 1

    session_id = Identifier(required=True)
    customer_email = String(required=True, max_length=254)


@storefront.event(part_of="CheckoutSession")
class AddressCaptured:
    """Address accepted; an order id was minted and payment setup is under way."""

    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True, max_length=64)
    shipping_option = String(required=True, max_length=10)
    amount = Integer(required=True)


@storefront.event(part_of="CheckoutSession")
class PaymentIntentCreated:
    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True, max_length=64)


@storefront.event(part_of="CheckoutSession")
class PaymentAttemptRejected:
    """A confirmation attempt was declined or could not reach the gateway; the shopper may retry."""

    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True, max_length=64)
    reason_code = String(required=True, max_length=100)
    attempt_number = Integer(required=True)


@storefront.event(part_of="CheckoutSession")
class PaymentConfirmed:
    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True, max_length=64)
    gateway_payment_id = String(required=True, max_length=255)
    amount = Integer(required=True)
    currency = String(required=True, max_length=3)


@storefront.event(part_of="CheckoutSession")
class CheckoutSucceeded:
    """Payment went through. ``order_status`` says whether the order record exists yet."""

    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True, max_length=64)
    gateway_payment_id = String(required=True, max_length=255)
    order_status = String(required=True, max_length=50)
    backend_order_id = String(max_length=255)


@storefront.event(part_of="CheckoutSession")
class CheckoutFailed:
    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(max_length=64)
    stage = String(required=True, max_length=50)
    reason = Text(required=True)


@storefront.event(part_of="CheckoutSession")
class CheckoutSteppedBack:
    __version__ = 1

    session_id = Identifier(required=True)
    from_state = String(required=True, max_length=50)
    to_state = String(required=True, max_length=50)
