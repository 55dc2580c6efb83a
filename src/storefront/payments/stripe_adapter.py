"""Stripe payment confirmer.

Confirms PaymentIntents through the stripe-python SDK and maps the outcome
onto the four payment results. The intent id is recovered from the client
secret (``pi_..._secret_...``). When configured with a publishable key the
client secret is passed along, the same way Stripe.js confirms from a browser.
An intent the gateway is still processing is re-read a few times before it is
reported as ``PaymentStillProcessing``.
"""

import time

import stripe
import structlog

from storefront.payments.port import (
    CardDetails,
    GatewayResponseError,
    PaymentConfirmer,
    PaymentDeclined,
    PaymentRequiresAction,
    PaymentResult,
    PaymentStillProcessing,
    PaymentSucceeded,
    PaymentTransportError,
)

logger = structlog.get_logger(__name__)

_SECRET_MARKER = "_secret_"
PROCESSING = "processing"


def intent_id_from_secret(client_secret: str) -> str:
    if not client_secret or _SECRET_MARKER not in client_secret:
        raise GatewayResponseError("Client secret does not identify a payment intent")
    return client_secret.split(_SECRET_MARKER, 1)[0]


class StripeConfirmer(PaymentConfirmer):
    """Production Stripe confirmation adapter."""

    def __init__(
        self,
        api_key: str,
        return_url: str | None = None,
        poll_attempts: int = 5,
        poll_interval: float = 1.0,
        sleep=time.sleep,
    ) -> None:
        self.api_key = api_key
        self.return_url = return_url
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.sleep = sleep

    def _auth_params(self, client_secret: str) -> dict:
        params = {"api_key": self.api_key}
        if self.api_key.startswith("pk_"):
            params["client_secret"] = client_secret
        return params

    def confirm(self, client_secret: str, card: CardDetails, billing_email: str) -> PaymentResult:
        intent_id = intent_id_from_secret(client_secret)
        params = {
            "payment_method": card.payment_method,
            "receipt_email": billing_email,
            **self._auth_params(client_secret),
        }
        if self.return_url:
            params["return_url"] = self.return_url

        try:
            intent = stripe.PaymentIntent.confirm(intent_id, **params)
        except stripe.StripeError as exc:
            return self._translate_error(exc, intent_id)
        return self._translate_intent(self._settle(intent, client_secret))

    def complete_action(self, client_secret: str, action_token: str) -> PaymentResult:
        intent_id = intent_id_from_secret(client_secret)
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, **self._auth_params(client_secret))
        except stripe.StripeError as exc:
            return self._translate_error(exc, intent_id)
        return self._translate_intent(self._settle(intent, client_secret))

    def _settle(self, intent, client_secret: str):
        """Re-read an intent the gateway is still processing until it settles.

        The charge has been accepted by then, so a failed re-read is retried
        rather than reported as a transport error the shopper could pay again on.
        """
        for attempt in range(1, self.poll_attempts + 1):
            if getattr(intent, "status", None) != PROCESSING:
                break
            logger.info("stripe_intent_processing", intent_id=intent.id, attempt=attempt)
            self.sleep(self.poll_interval)
            try:
                intent = stripe.PaymentIntent.retrieve(intent.id, **self._auth_params(client_secret))
            except stripe.StripeError as exc:
                logger.warning("stripe_intent_poll_failed", intent_id=intent.id, error=type(exc).__name__)
        return intent

    def _translate_intent(self, intent) -> PaymentResult:
        status = getattr(intent, "status", None)
        intent_id = getattr(intent, "id", None)

        if status == "succeeded":
            return PaymentSucceeded(
                gateway_payment_id=intent_id,
                amount=intent.amount,
                currency=intent.currency,
            )

        if status == PROCESSING:
            logger.warning("stripe_intent_still_processing", intent_id=intent_id)
            raise PaymentStillProcessing(intent_id)

        if status == "requires_action":
            next_action = getattr(intent, "next_action", None)
            token = intent_id
            redirect = getattr(next_action, "redirect_to_url", None) if next_action else None
            if redirect is not None and getattr(redirect, "url", None):
                token = redirect.url
            return PaymentRequiresAction(action_token=token)

        if status == "requires_payment_method":
            error = getattr(intent, "last_payment_error", None)
            code = (getattr(error, "decline_code", None) or getattr(error, "code", None)) if error else None
            message = getattr(error, "message", None) if error else None
            return PaymentDeclined(
                reason_code=code or "payment_failed",
                message=message or "Payment was not successful. Please try again.",
            )

        logger.error("stripe_unexpected_intent_status", intent_id=intent_id, status=status)
        raise GatewayResponseError(f"Unexpected payment intent status: {status!r}")

    def _translate_error(self, exc: stripe.StripeError, intent_id: str) -> PaymentResult:
        if isinstance(exc, stripe.CardError):
            logger.info("stripe_card_declined", intent_id=intent_id, code=exc.code)
            return PaymentDeclined(
                reason_code=getattr(exc, "decline_code", None) or exc.code or "card_declined",
                message=exc.user_message or "Your card was declined.",
            )
        if isinstance(exc, stripe.InvalidRequestError):
            logger.warning("stripe_invalid_request", intent_id=intent_id, code=exc.code)
            return PaymentDeclined(
                reason_code=exc.code or "invalid_request",
                message=exc.user_message or "Payment could not be processed. Please check your details.",
            )
        logger.warning("stripe_transport_error", intent_id=intent_id, error=type(exc).__name__)
        return PaymentTransportError(message="Could not reach the payment provider. Please try again.")
