"""Storefront backend factory.

Provides get_backend() / set_backend() to swap implementations:
- FakeBackend for development and testing
- HttpBackend when BACKEND_ADAPTER=http (base URL from STOREFRONT_API_URL)
"""

import os

from storefront.backend.port import StorefrontBackend

_current_backend: StorefrontBackend | None = None


def get_backend() -> StorefrontBackend:
    """Return the current backend. Defaults to FakeBackend."""
    global _current_backend
    if _current_backend is None:
        adapter = os.environ.get("BACKEND_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.backend.fake_adapter import FakeBackend

            _current_backend = FakeBackend(currency=os.environ.get("STOREFRONT_CURRENCY", "nzd"))
        elif adapter == "http":
            from storefront.backend.http_adapter import HttpBackend

            _current_backend = HttpBackend(
                base_url=os.environ.get("STOREFRONT_API_URL", "http://localhost:8080/api"),
                timeout=float(os.environ.get("STOREFRONT_API_TIMEOUT", "30")),
            )
        else:
            raise ValueError(f"Unknown backend adapter: {adapter}")
    return _current_backend


def set_backend(backend: StorefrontBackend) -> None:
    """Override the active backend (useful for tests)."""
    global _current_backend
    _current_backend = backend


def reset_backend() -> None:
    """Reset to default backend."""
    global _current_backend
    _current_backend = None
