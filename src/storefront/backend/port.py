"""Storefront backend port (abstract interface).

The backend owns three request/response contracts the storefront consumes:
catalog reads, payment-intent creation and order creation. The storefront
only ever speaks to it through this port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class BackendError(Exception):
    """A backend call failed. ``status_code`` is None for transport failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Transport failures and 5xx answers may succeed on a second try; 4xx never will."""
        return self.status_code is None or self.status_code >= 500


class ProductNotFound(BackendError):
    """The requested product does not exist in the catalog."""


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    price_minor_units: int | None
    description: str | None = None
    image: str | None = None


@dataclass(frozen=True)
class PaymentIntentRequest:
    """Body of ``POST /payments/intent``. ``amount`` is in minor units."""

    amount: int
    order_id: str
    customer_email: str
    lines: list[dict] = field(default_factory=list)
    shipping: dict | None = None

    def to_payload(self) -> dict:
        payload = {
            "amount": self.amount,
            "orderId": self.order_id,
            "customerEmail": self.customer_email,
            "lines": [
                {
                    "id": line["product_id"],
                    "title": line["title"],
                    "price": line["unit_price_minor_units"],
                    "quantity": line["quantity"],
                }
                for line in self.lines
            ],
        }
        if self.shipping:
            payload["shipping"] = self.shipping
        return payload


@dataclass(frozen=True)
class OrderRequest:
    """Body of ``POST /orders``, built from a checkout session snapshot."""

    payment_id: str
    customer_email: str
    lines: list[dict]
    shipping_address: dict
    order_id: str
    total_amount: int

    def to_payload(self) -> dict:
        return {
            "paymentId": self.payment_id,
            "customerEmail": self.customer_email,
            "lines": [
                {
                    "productId": line["product_id"],
                    "title": line["title"],
                    "price": line["unit_price_minor_units"],
                    "quantity": line["quantity"],
                }
                for line in self.lines
            ],
            "shippingAddress": self.shipping_address,
            "orderId": self.order_id,
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class OrderRecord:
    order_id: str
    status: str
    item_count: int


class StorefrontBackend(ABC):
    """Abstract storefront backend interface."""

    @abstractmethod
    def list_products(self) -> list[Product]:
        """Return the full catalog."""
        ...

    @abstractmethod
    def get_product(self, product_id: str) -> Product:
        """Return one product or raise ProductNotFound."""
        ...

    @abstractmethod
    def create_payment_intent(self, request: PaymentIntentRequest) -> str | None:
        """Create a payment intent and return its client secret (None if the backend sent none)."""
        ...

    @abstractmethod
    def create_order(self, request: OrderRequest, idempotency_key: str) -> OrderRecord:
        """Persist an order for a confirmed payment."""
        ...
