"""Storefront bounded context — Shopping Cart and Checkout.

Holds the client-side cart (with best-effort durability) and the checkout
state machine that drives a single purchase from review through payment
confirmation to order creation.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
