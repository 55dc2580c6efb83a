"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks the browser session id and what the API last reported, so
follow-up requests can address the same cart and checkout.
"""

from dataclasses import dataclass


@dataclass
class CartState:
    """Tracks state for a shopping cart lifecycle."""

    session_id: str | None = None
    item_count: int = 0
    total: int = 0


@dataclass
class CheckoutState:
    """Tracks state for a single checkout attempt."""

    session_id: str | None = None
    checkout_state: str | None = None
    order_id: str | None = None
    amount: int = 0
    payment_attempts: int = 0
