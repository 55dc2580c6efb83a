"""Payment confirmation port (abstract interface).

The payment gateway confirms charges from the client side: card data is
tokenized by the gateway's card widget and never passes through our backend.
Adapters wrap the gateway SDK and translate whatever it returns into exactly
one of four results. Adapters never retry a confirmation; a retry is always a
fresh submission by the shopper.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentSucceeded:
    """The charge went through. ``amount`` is in minor units."""

    gateway_payment_id: str
    amount: int
    currency: str


@dataclass(frozen=True)
class PaymentRequiresAction:
    """The gateway needs the shopper to complete an in-place challenge (e.g. 3-D Secure)."""

    action_token: str


@dataclass(frozen=True)
class PaymentDeclined:
    """The card was refused; the shopper may try again with different card input."""

    reason_code: str
    message: str


@dataclass(frozen=True)
class PaymentTransportError:
    """The gateway could not be reached or answered with a server-side failure."""

    message: str


PaymentResult = PaymentSucceeded | PaymentRequiresAction | PaymentDeclined | PaymentTransportError

PAYMENT_RESULT_TYPES = (PaymentSucceeded, PaymentRequiresAction, PaymentDeclined, PaymentTransportError)


@dataclass(frozen=True)
class CardDetails:
    """State of the card-entry widget at submission time.

    ``payment_method`` is the gateway's token for the entered card.
    """

    payment_method: str
    cardholder_name: str | None = None
    billing_country: str = "NZ"


class GatewayResponseError(Exception):
    """The gateway answered with something that is not a recognisable result."""


class PaymentStillProcessing(GatewayResponseError):
    """The gateway accepted the charge but has not settled it.

    The charge may still succeed, so the shopper must not be asked for the
    card again.
    """

    def __init__(self, payment_id: str) -> None:
        super().__init__(f"Payment {payment_id} is still processing")
        self.payment_id = payment_id


class PaymentConfirmer(ABC):
    """Abstract payment confirmation interface."""

    @abstractmethod
    def confirm(self, client_secret: str, card: CardDetails, billing_email: str) -> PaymentResult:
        """Confirm the payment intent identified by ``client_secret`` with the given card."""
        ...

    @abstractmethod
    def complete_action(self, client_secret: str, action_token: str) -> PaymentResult:
        """Run the gateway's in-place challenge and report the resulting state."""
        ...
