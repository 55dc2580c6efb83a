"""Storefront API package."""

from storefront.api.routes import cart_router, catalog_router, checkout_router, fakes_router, handoff_router

__all__ = ["catalog_router", "cart_router", "checkout_router", "handoff_router", "fakes_router"]
