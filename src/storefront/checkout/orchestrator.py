"""Checkout orchestrator — drives one CheckoutSession against the outside world.

The session aggregate owns the states and their guards; the orchestrator owns
the calls that move between them: payment-intent creation on the backend,
confirmation through the payment gateway, and order creation once the money
has moved.

Every network call happens with the session marked busy. A second submission
while a call is in flight is rejected with ``CheckoutBusy``, so one checkout
attempt can never issue two payment intents or two order requests.

The session copies the cart when it begins and refreshes the copy when the
address is accepted, so the payment intent matches what the shopper sees at
that moment. From then on the copy is frozen and cart edits no longer reach
the checkout. A succeeded session is discarded once its success record is
published; a failed one is kept so the shopper can recover it.

Partial failure: when the payment succeeds but the order cannot be recorded,
the checkout still succeeds. The session is tagged
``payment_succeeded_order_pending``, the cart is cleared and the shopper is
given the payment id to quote to support.
"""

import os
import threading
from contextlib import contextmanager

import structlog
from protean.exceptions import ValidationError

from storefront.backend import get_backend
from storefront.backend.port import BackendError, PaymentIntentRequest, StorefrontBackend
from storefront.cart.store import CartStore
from storefront.checkout.handoff import HandoffSlots
from storefront.checkout.order_creation import OrderCreationAdapter, OrderCreationFailed
from storefront.checkout.session import CheckoutSession, CheckoutState, FailureStage
from storefront.checkout.validation import SHIP
from storefront.payments import get_confirmer
from storefront.payments.port import (
    PAYMENT_RESULT_TYPES,
    CardDetails,
    GatewayResponseError,
    PaymentConfirmer,
    PaymentDeclined,
    PaymentRequiresAction,
    PaymentStillProcessing,
    PaymentSucceeded,
    PaymentTransportError,
)

logger = structlog.get_logger(__name__)

CHALLENGE_INCOMPLETE = "Additional authentication was not completed. Please try again."
TRANSPORT_MESSAGE = "We could not reach the payment provider. Please try again."
STILL_PROCESSING_MESSAGE = (
    "Your payment {payment_id} is still being processed. Please do not pay again; "
    "your order will be confirmed by email once the payment clears."
)


class CheckoutBusy(Exception):
    """A request for this checkout is already in flight."""


class PaymentIntentFailed(Exception):
    """Payment setup could not be started for the session."""


class CheckoutOrchestrator:
    def __init__(
        self,
        cart_store: CartStore,
        backend: StorefrontBackend | None = None,
        confirmer: PaymentConfirmer | None = None,
        order_creation: OrderCreationAdapter | None = None,
        handoff: HandoffSlots | None = None,
        currency: str | None = None,
    ) -> None:
        self.cart = cart_store
        self.backend = backend or get_backend()
        self.confirmer = confirmer or get_confirmer()
        self.order_creation = order_creation or OrderCreationAdapter(self.backend)
        self.handoff = handoff or HandoffSlots()
        self.currency = currency or os.environ.get("STOREFRONT_CURRENCY", "nzd")
        self.session: CheckoutSession | None = None
        self._lock = threading.Lock()

    # -------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------
    def begin(self) -> CheckoutSession:
        """Start a new checkout over the current cart, replacing any previous one."""
        if self.session is not None and self.session.busy:
            raise CheckoutBusy("A request for this checkout is already in flight")

        self.session = CheckoutSession.start(self.cart.lines(), currency=self.currency)
        logger.info(
            "checkout_started",
            session_id=str(self.session.id),
            amount=self.session.amount,
            item_count=self.session.item_count(),
        )
        return self.session

    def abandon(self) -> None:
        if self.session is None:
            return
        if self.session.busy:
            raise CheckoutBusy("A request for this checkout is already in flight")
        logger.info("checkout_abandoned", session_id=str(self.session.id), state=self.session.state)
        self.session = None

    def current(self) -> CheckoutSession:
        if self.session is None:
            raise ValidationError({"checkout": ["No checkout in progress"]})
        return self.session

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def submit_email(self, email) -> CheckoutSession:
        session = self.current()
        with self._in_flight(session):
            session.capture_email(email)
        return session

    def back_to_review(self) -> CheckoutSession:
        session = self.current()
        with self._in_flight(session):
            session.return_to_review()
        return session

    def submit_address(self, data) -> CheckoutSession:
        """Accept the address and set up the payment.

        The session's cart copy is refreshed from the live cart first, so the
        intent is created for what the shopper sees at this moment.
        """
        session = self.current()
        with self._in_flight(session):
            if not session.capture_address(data, lines=self.cart.lines()):
                return session

            try:
                client_secret = self._create_payment_intent(session)
            except PaymentIntentFailed as exc:
                self._fail(session, FailureStage.INTENT_CREATION, str(exc))
                return session
            except Exception:
                self._fail(session, FailureStage.INTENT_CREATION, "Payment setup failed unexpectedly")
                raise

            session.record_payment_intent(client_secret)
            logger.info("payment_intent_created", session_id=str(session.id), order_id=session.order_id)
        return session

    def confirm_payment(self, card: CardDetails) -> CheckoutSession:
        """Confirm the payment with the shopper's card, then record the order.

        Declines and transport errors keep the session on the payment step
        with a card-level message; the same client secret is reused on the
        next attempt. A charge the gateway is still processing fails the
        checkout and tells the shopper not to pay again. A succeeded session
        is returned and then discarded; the shopper collects the outcome from
        the handoff slot.
        """
        session = self.current()
        if session.current_state != CheckoutState.PAYMENT_AWAITING_CONFIRMATION:
            raise ValidationError({"state": [f"Cannot take payment while checkout is in {session.state}"]})

        with self._in_flight(session):
            try:
                result = self._confirm(session, card)
            except PaymentStillProcessing as exc:
                logger.warning("payment_still_processing", order_id=session.order_id, payment_id=exc.payment_id)
                self._fail(
                    session,
                    FailureStage.PAYMENT_CONFIRMATION,
                    STILL_PROCESSING_MESSAGE.format(payment_id=exc.payment_id),
                )
                return session
            except GatewayResponseError as exc:
                self._fail(session, FailureStage.PAYMENT_CONFIRMATION, str(exc) or "Unrecognised payment response")
                return session
            except Exception:
                self._fail(session, FailureStage.PAYMENT_CONFIRMATION, "Payment confirmation failed unexpectedly")
                raise

            if isinstance(result, PaymentSucceeded):
                if result.amount != session.amount:
                    logger.warning(
                        "payment_amount_mismatch",
                        order_id=session.order_id,
                        expected=session.amount,
                        charged=result.amount,
                    )
                session.record_payment_success(result.gateway_payment_id, result.amount, result.currency)
                logger.info(
                    "payment_confirmed",
                    order_id=session.order_id,
                    payment_id=result.gateway_payment_id,
                    attempt=session.payment_attempts,
                )
                self._create_order(session)
            elif isinstance(result, PaymentDeclined):
                logger.info("payment_declined", order_id=session.order_id, reason_code=result.reason_code)
                session.record_payment_rejection(result.reason_code, result.message)
            elif isinstance(result, PaymentTransportError):
                logger.warning("payment_transport_error", order_id=session.order_id, error=result.message)
                session.record_payment_rejection("transport_error", result.message or TRANSPORT_MESSAGE)
            else:
                logger.info("payment_challenge_incomplete", order_id=session.order_id)
                session.record_payment_rejection("requires_action", CHALLENGE_INCOMPLETE)

        if session.current_state == CheckoutState.SUCCEEDED:
            self.session = None
        return session

    def back_to_address(self) -> CheckoutSession:
        session = self.current()
        with self._in_flight(session):
            session.return_to_address()
        return session

    def recover(self) -> CheckoutSession:
        """Offer the next step after a failure.

        A payment setup failure goes back to the address step with the
        shopper's details intact; any other failure starts a fresh checkout
        over the cart.
        """
        session = self.current()
        if session.current_state != CheckoutState.FAILED:
            raise ValidationError({"state": ["Only a failed checkout can be recovered"]})

        if session.failure_stage == FailureStage.INTENT_CREATION.value:
            with self._in_flight(session):
                session.return_to_address()
            logger.info("checkout_recovered", session_id=str(session.id))
            return session

        logger.info("checkout_restarted", previous_session_id=str(session.id))
        return self.begin()

    # -------------------------------------------------------------------
    # External calls
    # -------------------------------------------------------------------
    def _create_payment_intent(self, session: CheckoutSession) -> str:
        shipping = None
        if session.address and session.address.shipping_option == SHIP:
            shipping = session.address.to_payload()

        request = PaymentIntentRequest(
            amount=session.amount,
            order_id=session.order_id,
            customer_email=session.customer_email.address if session.customer_email else None,
            lines=session.line_items(),
            shipping=shipping,
        )
        if request.amount is None or request.amount <= 0:
            raise PaymentIntentFailed("Amount must be greater than zero")
        if not request.order_id:
            raise PaymentIntentFailed("Order id is required")
        if not request.customer_email:
            raise PaymentIntentFailed("Customer email is required")
        if not request.lines:
            raise PaymentIntentFailed("Cart is empty")

        try:
            client_secret = self.backend.create_payment_intent(request)
        except BackendError as exc:
            logger.warning(
                "payment_intent_failed",
                order_id=session.order_id,
                status_code=exc.status_code,
                error=exc.message,
            )
            raise PaymentIntentFailed(exc.message) from exc

        if not client_secret or not isinstance(client_secret, str):
            raise PaymentIntentFailed("Payment setup did not return a client secret")
        return client_secret

    def _confirm(self, session: CheckoutSession, card: CardDetails):
        email = session.customer_email.address if session.customer_email else None
        result = self._checked(self.confirmer.confirm(session.payment_client_secret, card, email))

        if isinstance(result, PaymentRequiresAction):
            logger.info("payment_requires_action", order_id=session.order_id)
            result = self._checked(self.confirmer.complete_action(session.payment_client_secret, result.action_token))
        return result

    @staticmethod
    def _checked(result):
        if not isinstance(result, PAYMENT_RESULT_TYPES):
            raise GatewayResponseError(f"Unrecognised payment response: {type(result).__name__}")
        return result

    def _create_order(self, session: CheckoutSession) -> None:
        try:
            record = self.order_creation.submit(session)
        except OrderCreationFailed as exc:
            logger.error(
                "order_pending_after_payment",
                order_id=session.order_id,
                payment_id=session.gateway_payment_id,
                error=exc.message,
                attempts=exc.attempts,
            )
            record = None
        except Exception:
            logger.exception(
                "order_pending_after_payment",
                order_id=session.order_id,
                payment_id=session.gateway_payment_id,
            )
            record = None

        session.complete(record)
        self.cart.clear()
        self.handoff.publish_success(session.success_record())
        logger.info(
            "checkout_succeeded",
            order_id=session.order_id,
            payment_id=session.gateway_payment_id,
            order_status=session.order_status,
        )

    def _fail(self, session: CheckoutSession, stage: FailureStage, message: str) -> None:
        session.fail(stage, message)
        logger.error("checkout_failed", order_id=session.order_id, stage=stage.value, error=message)
        self.handoff.publish_error(session.error_record())

    @contextmanager
    def _in_flight(self, session: CheckoutSession):
        with self._lock:
            if session.busy:
                raise CheckoutBusy("A request for this checkout is already in flight")
            session.mark_busy()
        try:
            yield session
        finally:
            session.mark_idle()
