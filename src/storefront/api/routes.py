"""FastAPI routes for the Storefront — catalog, cart, checkout and handoff.

Each browser session (``session_id``) gets its own cart store, checkout
orchestrator and handoff slots. The cart and handoff records live in the
configured slot store under keys namespaced by the session id.
"""

import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

import structlog
from fastapi import APIRouter, HTTPException

from storefront.api.schemas import (
    AddLineRequest,
    AddressRequest,
    CartResponse,
    CheckoutResponse,
    ConfigureFakesRequest,
    EmailRequest,
    FakesConfigResponse,
    PaymentErrorRecord,
    PaymentRequest,
    PaymentSuccessRecord,
    ProductResponse,
    SetQuantityRequest,
    StatusResponse,
)
from storefront.backend import get_backend
from storefront.backend.fake_adapter import FakeBackend
from storefront.backend.port import ProductNotFound
from storefront.cart.persistence import CartPersistence
from storefront.cart.store import CartStore
from storefront.checkout.handoff import HandoffSlots
from storefront.checkout.orchestrator import CheckoutBusy, CheckoutOrchestrator
from storefront.checkout.session import CheckoutState
from storefront.payments.port import CardDetails
from storefront.slots import get_slot_store
from storefront.utils.logging import bind_checkout_context

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Per-session wiring
# ---------------------------------------------------------------------------
@dataclass
class Shopper:
    cart: CartStore
    checkout: CheckoutOrchestrator
    handoff: HandoffSlots

    def is_busy(self) -> bool:
        session = self.checkout.session
        return session is not None and bool(session.busy)


def _build_shopper(session_id: str) -> Shopper:
    store = get_slot_store()
    cart = CartStore(CartPersistence(store, slot_key=f"{session_id}:cart"))
    handoff = HandoffSlots(store, namespace=session_id)
    return Shopper(
        cart=cart,
        checkout=CheckoutOrchestrator(cart, handoff=handoff),
        handoff=handoff,
    )


class ShopperRegistry:
    """Live shoppers, least recently seen first.

    Shoppers idle for longer than ``ttl`` seconds are dropped, and the least
    recently seen are dropped once more than ``max_sessions`` are live. A
    shopper with a request in flight is never dropped. Carts and handoff
    records live in the slot store, so a dropped shopper's cart comes back
    on its next request; an unfinished checkout does not.
    """

    def __init__(self, max_sessions: int | None = None, ttl: float | None = None, clock=time.monotonic) -> None:
        self.max_sessions = max_sessions or int(os.environ.get("STOREFRONT_MAX_SESSIONS", "1000"))
        self.ttl = ttl or float(os.environ.get("STOREFRONT_SESSION_TTL", "1800"))
        self.clock = clock
        self._shoppers: OrderedDict[str, tuple[Shopper, float]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._shoppers)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._shoppers

    def get(self, session_id: str) -> Shopper:
        with self._lock:
            now = self.clock()
            entry = self._shoppers.pop(session_id, None)
            shopper = entry[0] if entry else _build_shopper(session_id)
            self._shoppers[session_id] = (shopper, now)
            self._evict(now, keep=session_id)
            return shopper

    def clear(self) -> None:
        with self._lock:
            self._shoppers.clear()

    def _evict(self, now: float, keep: str) -> None:
        for session_id, (shopper, last_seen) in list(self._shoppers.items()):
            if session_id == keep:
                break
            over_cap = len(self._shoppers) > self.max_sessions
            idle = now - last_seen > self.ttl
            if not (over_cap or idle):
                break
            if shopper.is_busy():
                continue
            del self._shoppers[session_id]
            logger.info("shopper_evicted", evicted_session=session_id, idle=idle)


shoppers = ShopperRegistry()


def get_shopper(session_id: str) -> Shopper:
    shopper = shoppers.get(session_id)
    bind_checkout_context(session_id)
    return shopper


def reset_shoppers() -> None:
    """Forget every session's wiring (useful for tests)."""
    shoppers.clear()


def _cart_response(cart: CartStore) -> CartResponse:
    return CartResponse(lines=cart.lines(), total=cart.total(), item_count=cart.item_count())


def _checkout_response(session) -> CheckoutResponse:
    return CheckoutResponse(
        session_id=str(session.id),
        state=session.state,
        customer_email=session.customer_email.address if session.customer_email else None,
        shipping_option=session.address.shipping_option if session.address else None,
        order_id=session.order_id,
        amount=session.amount or 0,
        currency=session.currency,
        item_count=session.item_count(),
        payment_attempts=session.payment_attempts or 0,
        gateway_payment_id=session.gateway_payment_id,
        order_status=session.order_status,
        backend_order_id=session.backend_order_id,
        failure_stage=session.failure_stage,
        last_error=session.last_error,
        field_errors=session.errors(),
        busy=bool(session.busy),
    )


def _step(call, *args):
    try:
        return call(*args)
    except CheckoutBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Catalog Router
# ---------------------------------------------------------------------------
catalog_router = APIRouter(prefix="/products", tags=["catalog"])


@catalog_router.get("", response_model=list[ProductResponse])
def list_products() -> list[ProductResponse]:
    return [ProductResponse(**vars(product)) for product in get_backend().list_products()]


@catalog_router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str) -> ProductResponse:
    try:
        product = get_backend().get_product(product_id)
    except ProductNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return ProductResponse(**vars(product))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/sessions/{session_id}/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
def get_cart(session_id: str) -> CartResponse:
    return _cart_response(get_shopper(session_id).cart)


@cart_router.post("/lines", response_model=CartResponse)
def add_cart_line(session_id: str, body: AddLineRequest) -> CartResponse:
    """Add a product to the cart.

    A body with only ``product_id`` is looked up in the catalog; a body that
    carries its own title and price is taken as given.
    """
    cart = get_shopper(session_id).cart
    if body.title is not None:
        product = body.model_dump(exclude={"quantity"})
    else:
        try:
            product = get_backend().get_product(body.product_id)
        except ProductNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.message) from exc

    cart.add_line(product, body.quantity)
    return _cart_response(cart)


@cart_router.put("/lines/{product_id}", response_model=CartResponse)
def set_cart_line_quantity(session_id: str, product_id: str, body: SetQuantityRequest) -> CartResponse:
    cart = get_shopper(session_id).cart
    cart.set_quantity(product_id, body.quantity)
    return _cart_response(cart)


@cart_router.delete("/lines/{product_id}", response_model=CartResponse)
def remove_cart_line(session_id: str, product_id: str) -> CartResponse:
    cart = get_shopper(session_id).cart
    cart.remove_line(product_id)
    return _cart_response(cart)


@cart_router.delete("", response_model=CartResponse)
def clear_cart(session_id: str) -> CartResponse:
    cart = get_shopper(session_id).cart
    cart.clear()
    return _cart_response(cart)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/sessions/{session_id}/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
def begin_checkout(session_id: str) -> CheckoutResponse:
    session = _step(get_shopper(session_id).checkout.begin)
    return _checkout_response(session)


@checkout_router.get("", response_model=CheckoutResponse)
def get_checkout(session_id: str) -> CheckoutResponse:
    return _checkout_response(get_shopper(session_id).checkout.current())


@checkout_router.delete("", response_model=StatusResponse)
def abandon_checkout(session_id: str) -> StatusResponse:
    _step(get_shopper(session_id).checkout.abandon)
    return StatusResponse(status="abandoned")


@checkout_router.post("/email", response_model=CheckoutResponse)
def submit_email(session_id: str, body: EmailRequest) -> CheckoutResponse:
    session = _step(get_shopper(session_id).checkout.submit_email, body.email)
    return _checkout_response(session)


@checkout_router.post("/address", response_model=CheckoutResponse)
def submit_address(session_id: str, body: AddressRequest) -> CheckoutResponse:
    session = _step(get_shopper(session_id).checkout.submit_address, body.model_dump())
    return _checkout_response(session)


@checkout_router.post("/payment", response_model=CheckoutResponse)
def confirm_payment(session_id: str, body: PaymentRequest) -> CheckoutResponse:
    card = CardDetails(
        payment_method=body.payment_method,
        cardholder_name=body.cardholder_name,
        billing_country=body.billing_country,
    )
    session = _step(get_shopper(session_id).checkout.confirm_payment, card)
    return _checkout_response(session)


@checkout_router.post("/back", response_model=CheckoutResponse)
def step_back(session_id: str) -> CheckoutResponse:
    """Go back one step: from address to review, or from payment to address."""
    checkout = get_shopper(session_id).checkout
    if checkout.current().current_state == CheckoutState.ADDRESS_CAPTURE:
        session = _step(checkout.back_to_review)
    else:
        session = _step(checkout.back_to_address)
    return _checkout_response(session)


@checkout_router.post("/recover", response_model=CheckoutResponse)
def recover_checkout(session_id: str) -> CheckoutResponse:
    session = _step(get_shopper(session_id).checkout.recover)
    return _checkout_response(session)


# ---------------------------------------------------------------------------
# Handoff Router
# ---------------------------------------------------------------------------
handoff_router = APIRouter(prefix="/sessions/{session_id}/handoff", tags=["handoff"])


@handoff_router.get("/success", response_model=PaymentSuccessRecord)
def take_success_record(session_id: str) -> PaymentSuccessRecord:
    record = get_shopper(session_id).handoff.take_success()
    if record is None:
        raise HTTPException(status_code=404, detail="No payment success record")
    return PaymentSuccessRecord(**record)


@handoff_router.get("/error", response_model=PaymentErrorRecord)
def take_error_record(session_id: str) -> PaymentErrorRecord:
    record = get_shopper(session_id).handoff.take_error()
    if record is None:
        raise HTTPException(status_code=404, detail="No payment error record")
    return PaymentErrorRecord(**record)


# ---------------------------------------------------------------------------
# Fake adapter configuration
# ---------------------------------------------------------------------------
fakes_router = APIRouter(prefix="/storefront/fakes", tags=["development"])


@fakes_router.post("/configure", response_model=FakesConfigResponse)
def configure_fakes(body: ConfigureFakesRequest) -> FakesConfigResponse:
    """Configure the FakeBackend failure modes (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It allows exercising payment setup and order creation failures by hand.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Fake configuration not available in production")

    backend = get_backend()
    if not isinstance(backend, FakeBackend):
        raise HTTPException(status_code=400, detail="Fake configuration only available for FakeBackend")

    if body.intent_failure:
        backend.fail_intents(body.intent_failure)
    else:
        backend.intent_failure = None
    backend.omit_client_secret = body.omit_client_secret
    backend.fail_orders(times=body.order_failures, status_code=body.order_failure_status)

    return FakesConfigResponse(
        backend=type(backend).__name__,
        intent_failure=backend.intent_failure.message if backend.intent_failure else None,
        omit_client_secret=backend.omit_client_secret,
        order_failures=backend.order_failures_remaining,
    )
