"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer) — separate from the
cart and checkout aggregates.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class ProductResponse(BaseModel):
    id: str
    title: str
    price_minor_units: int | None = None
    description: str | None = None
    image: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddLineRequest(BaseModel):
    """Either a catalog ``product_id`` or a full product record."""

    product_id: str
    quantity: int = 1
    title: str | None = None
    price_minor_units: int | None = None
    image: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"product_id": "1", "quantity": 2},
            ]
        }
    }


class SetQuantityRequest(BaseModel):
    quantity: int


class CartLineResponse(BaseModel):
    product_id: str | None = None
    title: str | None = None
    unit_price_minor_units: int | None = None
    quantity: int
    image_ref: str | None = None


class CartResponse(BaseModel):
    lines: list[CartLineResponse] = Field(default_factory=list)
    total: int = 0
    item_count: int = 0


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class EmailRequest(BaseModel):
    email: str | None = None


class AddressRequest(BaseModel):
    full_name: str | None = None
    shipping_option: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    postal_code: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "full_name": "Aroha Smith",
                    "shipping_option": "ship",
                    "address_line1": "12 Kauri Street",
                    "address_line2": None,
                    "city": "Wellington",
                    "postal_code": "6011",
                }
            ]
        }
    }


class PaymentRequest(BaseModel):
    """Card widget state. ``payment_method`` is the gateway's token for the card."""

    payment_method: str
    cardholder_name: str | None = None
    billing_country: str = "NZ"


class CheckoutResponse(BaseModel):
    session_id: str
    state: str
    customer_email: str | None = None
    shipping_option: str | None = None
    order_id: str | None = None
    amount: int = 0
    currency: str | None = None
    item_count: int = 0
    payment_attempts: int = 0
    gateway_payment_id: str | None = None
    order_status: str | None = None
    backend_order_id: str | None = None
    failure_stage: str | None = None
    last_error: str | None = None
    field_errors: dict[str, list[str]] = Field(default_factory=dict)
    busy: bool = False


# ---------------------------------------------------------------------------
# Handoff records
# ---------------------------------------------------------------------------
class PaymentSuccessRecord(BaseModel):
    orderId: str | None = None
    paymentId: str | None = None
    amount: int | None = None
    currency: str | None = None
    customerEmail: str | None = None
    orderStatus: str | None = None
    backendOrderId: str | None = None
    itemCount: int | None = None
    message: str | None = None
    timestamp: str | None = None


class PaymentErrorRecord(BaseModel):
    orderId: str | None = None
    stage: str | None = None
    message: str | None = None
    timestamp: str | None = None


# ---------------------------------------------------------------------------
# Fake adapter configuration (non-production)
# ---------------------------------------------------------------------------
class ConfigureFakesRequest(BaseModel):
    intent_failure: str | None = None
    omit_client_secret: bool = False
    order_failures: int = 0
    order_failure_status: int | None = 500


class FakesConfigResponse(BaseModel):
    backend: str
    intent_failure: str | None = None
    omit_client_secret: bool = False
    order_failures: int = 0


class StatusResponse(BaseModel):
    status: str = "ok"
