import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers
from storefront.api import cart_router, catalog_router, checkout_router, fakes_router, handoff_router
from storefront.backend import set_backend
from storefront.payments import set_confirmer


@pytest.fixture()
def api_fakes(backend, confirmer):
    set_backend(backend)
    set_confirmer(confirmer)
    return backend, confirmer


@pytest.fixture()
def client(api_fakes):
    app = FastAPI()
    app.include_router(catalog_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(handoff_router)
    app.include_router(fakes_router)
    register_exception_handlers(app)
    return TestClient(app)
