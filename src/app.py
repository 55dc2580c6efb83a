"""Storefront FastAPI application.

Serves the catalog, per-session carts and the checkout flow synchronously
over HTTP. Every request runs inside the storefront domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; the storefront runs on Protean's
# in-memory defaults either way.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from storefront.backend import get_backend
from storefront.backend.fake_adapter import FakeBackend
from storefront.domain import storefront  # noqa: E402
from storefront.payments import get_confirmer
from storefront.payments.fake_adapter import FakeConfirmer
from storefront.utils.logging import clear_context, configure_logging

configure_logging()
storefront.init()


def _link_fakes() -> None:
    """Let the fake confirmer charge what the fake backend's intents asked for."""
    backend = get_backend()
    confirmer = get_confirmer()
    if isinstance(backend, FakeBackend) and isinstance(confirmer, FakeConfirmer):
        backend.on_intent_created = confirmer.register_intent


_link_fakes()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Shopping cart and checkout",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each request."""
    with storefront.domain_context():
        try:
            response = await call_next(request)
        finally:
            clear_context()
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import (  # noqa: E402
    cart_router,
    catalog_router,
    checkout_router,
    fakes_router,
    handoff_router,
)

app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(handoff_router)
app.include_router(fakes_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "storefront": {"name": storefront.name},
            },
            "adapters": {
                "backend": type(get_backend()).__name__,
                "payments": type(get_confirmer()).__name__,
            },
        }
    )
