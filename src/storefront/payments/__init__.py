"""Payment confirmer factory.

Provides get_confirmer() / set_confirmer() to swap implementations:
- FakeConfirmer for development and testing
- StripeConfirmer when PAYMENT_ADAPTER=stripe (key from STRIPE_SECRET_KEY)
"""

import os

from storefront.payments.port import PaymentConfirmer

_current_confirmer: PaymentConfirmer | None = None


def get_confirmer() -> PaymentConfirmer:
    """Return the current payment confirmer. Defaults to FakeConfirmer."""
    global _current_confirmer
    if _current_confirmer is None:
        adapter = os.environ.get("PAYMENT_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.payments.fake_adapter import FakeConfirmer

            _current_confirmer = FakeConfirmer()
        elif adapter == "stripe":
            from storefront.payments.stripe_adapter import StripeConfirmer

            _current_confirmer = StripeConfirmer(
                api_key=os.environ["STRIPE_SECRET_KEY"],
                return_url=os.environ.get("STRIPE_RETURN_URL"),
            )
        else:
            raise ValueError(f"Unknown payment adapter: {adapter}")
    return _current_confirmer


def set_confirmer(confirmer: PaymentConfirmer) -> None:
    """Override the active payment confirmer (useful for tests)."""
    global _current_confirmer
    _current_confirmer = confirmer


def reset_confirmer() -> None:
    """Reset to default payment confirmer."""
    global _current_confirmer
    _current_confirmer = None
