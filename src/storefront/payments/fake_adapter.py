"""Scriptable fake payment confirmer for development and testing.

Results are served from a queue; once it is empty every confirmation
succeeds. A queued exception is raised instead of returned. Amounts come
from intents registered by the fake backend (or by the test), so a success
carries the amount that was actually requested.
"""

import os
from uuid import uuid4

from storefront.payments.port import (
    CardDetails,
    PaymentConfirmer,
    PaymentDeclined,
    PaymentResult,
    PaymentSucceeded,
)

# Card tokens that decline without scripting, after the gateway's test-mode cards
DECLINING_TOKENS = {
    "pm_card_chargeDeclined": ("card_declined", "Your card was declined."),
    "pm_card_chargeDeclinedInsufficientFunds": ("insufficient_funds", "Your card has insufficient funds."),
    "pm_card_chargeDeclinedExpiredCard": ("expired_card", "Your card has expired."),
}


def _serve(queue):
    result = queue.pop(0)
    if isinstance(result, Exception):
        raise result
    return result


class FakeConfirmer(PaymentConfirmer):
    """Configurable fake payment confirmer."""

    def __init__(self) -> None:
        self.results: list[PaymentResult | Exception] = []
        self.action_results: list[PaymentResult | Exception] = []
        self.intents: dict[str, tuple[int, str]] = {}
        self.calls: list[dict] = []

    def script(self, *results: PaymentResult | Exception) -> None:
        """Queue results for the next ``confirm`` calls."""
        self.results.extend(results)

    def script_actions(self, *results: PaymentResult | Exception) -> None:
        """Queue results for the next ``complete_action`` calls."""
        self.action_results.extend(results)

    def register_intent(self, client_secret: str, amount: int, currency: str) -> None:
        self.intents[client_secret] = (amount, currency)

    def _success(self, client_secret: str) -> PaymentSucceeded:
        amount, currency = self.intents.get(
            client_secret, (0, os.environ.get("STOREFRONT_CURRENCY", "nzd"))
        )
        return PaymentSucceeded(
            gateway_payment_id=f"fake_pi_{uuid4().hex[:12]}",
            amount=amount,
            currency=currency,
        )

    def confirm(self, client_secret: str, card: CardDetails, billing_email: str) -> PaymentResult:
        self.calls.append(
            {
                "method": "confirm",
                "client_secret": client_secret,
                "payment_method": card.payment_method,
                "billing_email": billing_email,
            }
        )
        if self.results:
            return _serve(self.results)
        if card.payment_method in DECLINING_TOKENS:
            reason_code, message = DECLINING_TOKENS[card.payment_method]
            return PaymentDeclined(reason_code=reason_code, message=message)
        return self._success(client_secret)

    def complete_action(self, client_secret: str, action_token: str) -> PaymentResult:
        self.calls.append(
            {
                "method": "complete_action",
                "client_secret": client_secret,
                "action_token": action_token,
            }
        )
        if self.action_results:
            return _serve(self.action_results)
        return self._success(client_secret)
