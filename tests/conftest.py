import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config environment and keep every adapter factory on its fake,
    whatever the shell exports.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["SLOT_STORE_ADAPTER"] = "memory"
    os.environ["BACKEND_ADAPTER"] = "fake"
    os.environ["PAYMENT_ADAPTER"] = "fake"


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Give every test fresh fake adapters and no leftover session wiring."""
    from storefront.api.routes import reset_shoppers
    from storefront.backend import reset_backend
    from storefront.payments import reset_confirmer
    from storefront.slots import reset_slot_store

    yield

    reset_shoppers()
    reset_backend()
    reset_confirmer()
    reset_slot_store()
