"""Configurable fake storefront backend for development and testing.

Serves a small in-memory catalog, mints payment intents and records orders.
Failures can be switched on at runtime: payment-intent creation can fail or
come back without a client secret, and order creation can fail a set number
of times (or forever) with a chosen status code.
"""

from collections.abc import Callable
from uuid import uuid4

from storefront.backend.port import (
    BackendError,
    OrderRecord,
    OrderRequest,
    PaymentIntentRequest,
    Product,
    ProductNotFound,
    StorefrontBackend,
)

DEFAULT_CATALOG = [
    Product(id="1", title="Dragon", price_minor_units=1500, description="Hand-poured dragon candle", image="dragon.jpg"),
    Product(id="2", title="Corn Cob", price_minor_units=1600, description="Beeswax corn cob candle", image="corn-cob.jpg"),
    Product(id="3", title="Bee Hive", price_minor_units=2200, description="Pure beeswax hive candle", image="bee-hive.jpg"),
]


class FakeBackend(StorefrontBackend):
    """Configurable fake storefront backend."""

    def __init__(
        self,
        products: list[Product] | None = None,
        on_intent_created: Callable[[str, int, str], None] | None = None,
        currency: str = "nzd",
    ) -> None:
        self.products = {p.id: p for p in (products if products is not None else DEFAULT_CATALOG)}
        self.on_intent_created = on_intent_created
        self.currency = currency
        self.intents: dict[str, dict] = {}
        self.orders: dict[str, OrderRecord] = {}
        self.calls: list[dict] = []

        self.intent_failure: BackendError | None = None
        self.omit_client_secret: bool = False
        self.order_failures_remaining: int = 0
        self.order_failure_status: int | None = 500

    def fail_intents(self, message: str = "Payment setup failed", status_code: int | None = 500) -> None:
        self.intent_failure = BackendError(message, status_code=status_code)

    def fail_orders(self, times: int = -1, status_code: int | None = 500) -> None:
        """Fail the next ``times`` order creations; -1 fails every one."""
        self.order_failures_remaining = times
        self.order_failure_status = status_code

    def list_products(self) -> list[Product]:
        self.calls.append({"method": "list_products"})
        return list(self.products.values())

    def get_product(self, product_id: str) -> Product:
        self.calls.append({"method": "get_product", "product_id": product_id})
        try:
            return self.products[str(product_id)]
        except KeyError:
            raise ProductNotFound("Product not found", status_code=404) from None

    def create_payment_intent(self, request: PaymentIntentRequest) -> str | None:
        self.calls.append({"method": "create_payment_intent", "payload": request.to_payload()})
        if self.intent_failure is not None:
            raise self.intent_failure
        if self.omit_client_secret:
            return None

        intent_id = f"pi_fake_{uuid4().hex[:12]}"
        client_secret = f"{intent_id}_secret_{uuid4().hex[:12]}"
        self.intents[client_secret] = {"intent_id": intent_id, **request.to_payload()}
        if self.on_intent_created is not None:
            self.on_intent_created(client_secret, request.amount, self.currency)
        return client_secret

    def create_order(self, request: OrderRequest, idempotency_key: str) -> OrderRecord:
        self.calls.append(
            {
                "method": "create_order",
                "payload": request.to_payload(),
                "idempotency_key": idempotency_key,
            }
        )
        if self.order_failures_remaining != 0:
            if self.order_failures_remaining > 0:
                self.order_failures_remaining -= 1
            raise BackendError("Order creation failed", status_code=self.order_failure_status)

        if idempotency_key in self.orders:
            return self.orders[idempotency_key]

        record = OrderRecord(
            order_id=f"ord_{uuid4().hex[:10]}",
            status="completed",
            item_count=sum(line["quantity"] for line in request.lines),
        )
        self.orders[idempotency_key] = record
        return record
