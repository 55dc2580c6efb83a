"""CheckoutSession aggregate — one shopper's attempt to pay for the cart.

The session is transient: it is created when checkout begins and discarded
when the shopper leaves or the attempt reaches a terminal state. It holds a
copy of the cart lines taken when the address is submitted, so edits to the
live cart cannot change an order that is already being paid for.

State Machine (7 states):
    REVIEW → ADDRESS_CAPTURE → PAYMENT_INTENT_PENDING →
    PAYMENT_AWAITING_CONFIRMATION → ORDER_CREATION_PENDING → SUCCEEDED
    ADDRESS_CAPTURE → REVIEW, PAYMENT_AWAITING_CONFIRMATION → ADDRESS_CAPTURE
    any non-terminal state → FAILED
    FAILED (payment setup only) → ADDRESS_CAPTURE

The client-generated ``order_id`` is minted when the address is accepted. It
travels with the payment intent and with the order request, and is the only
link between the two; the order service is expected to deduplicate on it.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, Text, ValueObject

from storefront.checkout.events import (
    AddressCaptured,
    CheckoutFailed,
    CheckoutStarted,
    CheckoutSteppedBack,
    CheckoutSucceeded,
    EmailCaptured,
    PaymentAttemptRejected,
    PaymentConfirmed,
    PaymentIntentCreated,
)
from storefront.checkout.validation import (
    EMAIL_PATTERN,
    POSTAL_CODE_PATTERN,
    SHIP,
    normalize_address,
    validate_address,
    validate_email,
)
from storefront.domain import storefront


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CheckoutState(Enum):
    REVIEW = "Review"
    ADDRESS_CAPTURE = "Address_Capture"
    PAYMENT_INTENT_PENDING = "Payment_Intent_Pending"
    PAYMENT_AWAITING_CONFIRMATION = "Payment_Awaiting_Confirmation"
    ORDER_CREATION_PENDING = "Order_Creation_Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class FailureStage(Enum):
    INTENT_CREATION = "intent_creation"
    PAYMENT_CONFIRMATION = "payment_confirmation"
    ORDER_CREATION = "order_creation"


class ShippingOption(Enum):
    SHIP = "ship"
    PICKUP = "pickup"


class OrderStatus(Enum):
    CREATED = "created"
    PAYMENT_SUCCEEDED_ORDER_PENDING = "payment_succeeded_order_pending"


# State machine transition map
_VALID_TRANSITIONS = {
    CheckoutState.REVIEW: {CheckoutState.ADDRESS_CAPTURE, CheckoutState.FAILED},
    CheckoutState.ADDRESS_CAPTURE: {
        CheckoutState.REVIEW,
        CheckoutState.PAYMENT_INTENT_PENDING,
        CheckoutState.FAILED,
    },
    CheckoutState.PAYMENT_INTENT_PENDING: {CheckoutState.PAYMENT_AWAITING_CONFIRMATION, CheckoutState.FAILED},
    CheckoutState.PAYMENT_AWAITING_CONFIRMATION: {
        CheckoutState.ORDER_CREATION_PENDING,
        CheckoutState.ADDRESS_CAPTURE,  # Shopper goes back to change the address
        CheckoutState.FAILED,
    },
    CheckoutState.ORDER_CREATION_PENDING: {CheckoutState.SUCCEEDED, CheckoutState.FAILED},
    CheckoutState.SUCCEEDED: set(),  # Terminal
    CheckoutState.FAILED: {CheckoutState.ADDRESS_CAPTURE},  # Only after a payment setup failure
}

_TERMINAL_STATES = {CheckoutState.SUCCEEDED, CheckoutState.FAILED}

# States that only exist once the gateway has handed out a client secret
_SECRET_STATES = {CheckoutState.PAYMENT_AWAITING_CONFIRMATION, CheckoutState.ORDER_CREATION_PENDING}

SUPPORT_MESSAGE = (
    "Your payment was successful, but we could not record your order yet. "
    "Please contact support with payment id {payment_id} and we will sort it out."
)


def mint_order_id(now: datetime | None = None) -> str:
    """Timestamp plus a short random suffix, e.g. ``ORD-1718000000000-3F9A1C``.

    Readable in support conversations; not guaranteed unique.
    """
    now = now or datetime.now(UTC)
    return f"ORD-{int(now.timestamp() * 1000)}-{uuid4().hex[:6].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="CheckoutSession")
class EmailAddress:
    """The address receipts and order updates go to."""

    address = String(required=True, max_length=254)

    @invariant.post
    def must_look_like_an_email(self):
        if self.address is not None and not EMAIL_PATTERN.match(self.address):
            raise ValidationError({"customer_email": ["Please enter a valid email address"]})


@storefront.value_object(part_of="CheckoutSession")
class ShippingAddress:
    """Where the order goes, or a note that it will be picked up.

    Street fields are only kept for shipped orders.
    """

    full_name = String(required=True, max_length=255)
    shipping_option = String(required=True, choices=ShippingOption)
    address_line1 = String(max_length=255)
    address_line2 = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=4)

    @invariant.post
    def shipped_orders_need_a_street_address(self):
        if self.shipping_option != SHIP:
            return
        if not self.address_line1 or not self.city:
            raise ValidationError({"address": ["Street address and city are required for shipping"]})
        if not self.postal_code or not POSTAL_CODE_PATTERN.match(self.postal_code):
            raise ValidationError({"postal_code": ["Postal code must be 4 digits"]})

    def to_payload(self) -> dict:
        payload = {"fullName": self.full_name, "shippingOption": self.shipping_option}
        if self.shipping_option == SHIP:
            payload.update(
                {
                    "addressLine1": self.address_line1,
                    "addressLine2": self.address_line2,
                    "city": self.city,
                    "postalCode": self.postal_code,
                }
            )
        return payload


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class CheckoutSession:
    state = String(choices=CheckoutState, default=CheckoutState.REVIEW.value)
    customer_email = ValueObject(EmailAddress)
    address = ValueObject(ShippingAddress)

    # Cart copy and payment
    lines = Text()  # JSON: [{product_id, title, unit_price_minor_units, quantity, image_ref}]
    amount = Integer(default=0)
    currency = String(max_length=3, default="nzd")
    order_id = String(max_length=64)
    payment_client_secret = String(max_length=255)
    payment_attempts = Integer(default=0)
    gateway_payment_id = String(max_length=255)
    paid_amount = Integer()

    # Outcome
    order_status = String(choices=OrderStatus)
    backend_order_id = String(max_length=255)
    failure_stage = String(choices=FailureStage)
    last_error = Text()
    field_errors = Text()  # JSON: {field: [messages]}
    busy = Boolean(default=False)

    started_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def payment_states_need_a_client_secret(self):
        if CheckoutState(self.state) in _SECRET_STATES and not self.payment_client_secret:
            raise ValidationError({"payment_client_secret": ["A client secret is required to take payment"]})

    @invariant.post
    def failed_sessions_carry_an_error(self):
        if CheckoutState(self.state) == CheckoutState.FAILED and not self.last_error:
            raise ValidationError({"last_error": ["A failed checkout must say what went wrong"]})

    @invariant.post
    def succeeded_sessions_carry_an_outcome(self):
        if CheckoutState(self.state) == CheckoutState.SUCCEEDED and not (
            self.order_status and self.gateway_payment_id
        ):
            raise ValidationError({"order_status": ["A successful checkout must record its payment and order status"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def start(cls, lines, currency="nzd"):
        """Open a session over a copy of the given cart lines."""
        lines = [dict(line) for line in lines]
        if not lines:
            raise ValidationError({"cart": ["Cannot check out an empty cart"]})

        now = datetime.now(UTC)
        session = cls(
            state=CheckoutState.REVIEW.value,
            lines=json.dumps(lines),
            amount=_amount_of(lines),
            currency=currency,
            started_at=now,
            updated_at=now,
        )
        session.raise_(
            CheckoutStarted(
                session_id=str(session.id),
                amount=session.amount,
                line_count=len(lines),
            )
        )
        return session

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def current_state(self) -> CheckoutState:
        return CheckoutState(self.state)

    @property
    def is_terminal(self) -> bool:
        return self.current_state in _TERMINAL_STATES

    def line_items(self) -> list[dict]:
        return json.loads(self.lines) if self.lines else []

    def item_count(self) -> int:
        return sum(line["quantity"] for line in self.line_items())

    def errors(self) -> dict[str, list[str]]:
        return json.loads(self.field_errors) if self.field_errors else {}

    def support_message(self) -> str | None:
        if self.order_status == OrderStatus.PAYMENT_SUCCEEDED_ORDER_PENDING.value:
            return SUPPORT_MESSAGE.format(payment_id=self.gateway_payment_id)
        return None

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def capture_email(self, email) -> bool:
        """REVIEW → ADDRESS_CAPTURE when the email is well formed.

        An invalid email leaves the session where it is with a field error.
        """
        self._assert_state(CheckoutState.REVIEW)
        errors = validate_email(email)
        if errors:
            self._set_field_errors(errors)
            return False

        email = str(email).strip()
        with atomic_change(self):
            self.customer_email = EmailAddress(address=email)
            self.field_errors = None
            self._move_to(CheckoutState.ADDRESS_CAPTURE)

        self.raise_(EmailCaptured(session_id=str(self.id), customer_email=email))
        return True

    def return_to_review(self):
        self._assert_state(CheckoutState.ADDRESS_CAPTURE)
        self._step_back(CheckoutState.REVIEW)

    def capture_address(self, data, lines=None) -> bool:
        """ADDRESS_CAPTURE → PAYMENT_INTENT_PENDING when the address validates.

        ``lines`` refreshes the cart copy just before payment setup. A fresh
        order id is minted every time an address is accepted.
        """
        self._assert_state(CheckoutState.ADDRESS_CAPTURE)
        errors = validate_address(data)
        if errors:
            self._set_field_errors(errors)
            return False

        with atomic_change(self):
            self.address = ShippingAddress(**normalize_address(data))
            if lines is not None:
                lines = [dict(line) for line in lines]
                self.lines = json.dumps(lines)
                self.amount = _amount_of(lines)
            self.order_id = mint_order_id()
            self.field_errors = None
            self.last_error = None
            self.failure_stage = None
            self._move_to(CheckoutState.PAYMENT_INTENT_PENDING)

        self.raise_(
            AddressCaptured(
                session_id=str(self.id),
                order_id=self.order_id,
                shipping_option=self.address.shipping_option,
                amount=self.amount,
            )
        )
        return True

    def record_payment_intent(self, client_secret) -> bool:
        """PAYMENT_INTENT_PENDING → PAYMENT_AWAITING_CONFIRMATION, only with a client secret."""
        self._assert_state(CheckoutState.PAYMENT_INTENT_PENDING)
        if not client_secret or not isinstance(client_secret, str):
            self.fail(FailureStage.INTENT_CREATION, "Payment setup did not return a client secret")
            return False

        with atomic_change(self):
            self.payment_client_secret = client_secret
            self._move_to(CheckoutState.PAYMENT_AWAITING_CONFIRMATION)

        self.raise_(PaymentIntentCreated(session_id=str(self.id), order_id=self.order_id))
        return True

    def record_payment_rejection(self, reason_code, message):
        """Keep the session on the payment step with a card-level error."""
        self._assert_state(CheckoutState.PAYMENT_AWAITING_CONFIRMATION)
        with atomic_change(self):
            self.payment_attempts = (self.payment_attempts or 0) + 1
            self.field_errors = json.dumps({"card": [message]})
            self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentAttemptRejected(
                session_id=str(self.id),
                order_id=self.order_id,
                reason_code=reason_code,
                attempt_number=self.payment_attempts,
            )
        )

    def record_payment_success(self, gateway_payment_id, amount, currency):
        """PAYMENT_AWAITING_CONFIRMATION → ORDER_CREATION_PENDING."""
        self._assert_state(CheckoutState.PAYMENT_AWAITING_CONFIRMATION)
        with atomic_change(self):
            self.payment_attempts = (self.payment_attempts or 0) + 1
            self.gateway_payment_id = gateway_payment_id
            self.paid_amount = amount
            self.currency = currency
            self.field_errors = None
            self._move_to(CheckoutState.ORDER_CREATION_PENDING)

        self.raise_(
            PaymentConfirmed(
                session_id=str(self.id),
                order_id=self.order_id,
                gateway_payment_id=gateway_payment_id,
                amount=amount,
                currency=currency,
            )
        )

    def complete(self, order_record=None):
        """ORDER_CREATION_PENDING → SUCCEEDED.

        Without an order record the payment still counts as a success; the
        session is tagged as pending an order and carries a support message.
        """
        self._assert_state(CheckoutState.ORDER_CREATION_PENDING)
        with atomic_change(self):
            if order_record is not None:
                self.order_status = OrderStatus.CREATED.value
                self.backend_order_id = order_record.order_id
            else:
                self.order_status = OrderStatus.PAYMENT_SUCCEEDED_ORDER_PENDING.value
                self.last_error = SUPPORT_MESSAGE.format(payment_id=self.gateway_payment_id)
            self.busy = False
            self._move_to(CheckoutState.SUCCEEDED)

        self.raise_(
            CheckoutSucceeded(
                session_id=str(self.id),
                order_id=self.order_id,
                gateway_payment_id=self.gateway_payment_id,
                order_status=self.order_status,
                backend_order_id=self.backend_order_id,
            )
        )

    def fail(self, stage: FailureStage, message: str):
        """Move to FAILED, recording the stage and what went wrong."""
        self._assert_can_transition(CheckoutState.FAILED)
        with atomic_change(self):
            self.last_error = message or "Checkout failed"
            self.failure_stage = stage.value
            self.busy = False
            self._move_to(CheckoutState.FAILED)

        self.raise_(
            CheckoutFailed(
                session_id=str(self.id),
                order_id=self.order_id,
                stage=stage.value,
                reason=self.last_error,
            )
        )

    def return_to_address(self):
        """Back to ADDRESS_CAPTURE from the payment step, or after a payment setup failure.

        The old client secret and order id are dropped; resubmitting the
        address sets up a new payment.
        """
        current = self.current_state
        if current == CheckoutState.FAILED:
            if self.failure_stage != FailureStage.INTENT_CREATION.value:
                raise ValidationError({"state": ["This checkout cannot be resumed; please start again"]})
        elif current != CheckoutState.PAYMENT_AWAITING_CONFIRMATION:
            raise ValidationError({"state": [f"Cannot return to the address step from {current.value}"]})

        self._step_back(CheckoutState.ADDRESS_CAPTURE)

    def mark_busy(self):
        if self.busy:
            raise ValidationError({"busy": ["A request for this checkout is already in flight"]})
        self.busy = True

    def mark_idle(self):
        self.busy = False

    # -------------------------------------------------------------------
    # Handoff records
    # -------------------------------------------------------------------
    def success_record(self) -> dict:
        return {
            "orderId": self.order_id,
            "paymentId": self.gateway_payment_id,
            "amount": self.paid_amount,
            "currency": self.currency,
            "customerEmail": self.customer_email.address if self.customer_email else None,
            "orderStatus": self.order_status,
            "backendOrderId": self.backend_order_id,
            "itemCount": self.item_count(),
            "message": self.support_message(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def error_record(self) -> dict:
        return {
            "orderId": self.order_id,
            "stage": self.failure_stage,
            "message": self.last_error,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_state(self, *expected):
        current = self.current_state
        if current not in expected:
            allowed = ", ".join(state.value for state in expected)
            raise ValidationError({"state": [f"Checkout is in {current.value}; expected {allowed}"]})

    def _assert_can_transition(self, target):
        """Validate that the current state allows transition to target."""
        current = self.current_state
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

    def _move_to(self, target):
        self._assert_can_transition(target)
        self.state = target.value
        self.updated_at = datetime.now(UTC)

    def _step_back(self, target):
        from_state = self.current_state
        with atomic_change(self):
            self._move_to(target)
            self.payment_client_secret = None
            self.order_id = None
            self.field_errors = None
            self.last_error = None
            self.failure_stage = None

        self.raise_(
            CheckoutSteppedBack(
                session_id=str(self.id),
                from_state=from_state.value,
                to_state=target.value,
            )
        )

    def _set_field_errors(self, errors):
        self.field_errors = json.dumps(errors)
        self.updated_at = datetime.now(UTC)


def _amount_of(lines) -> int:
    return sum((line.get("unit_price_minor_units") or 0) * line["quantity"] for line in lines)
