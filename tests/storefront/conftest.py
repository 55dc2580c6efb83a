import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture()
def catalog():
    from storefront.backend.fake_adapter import DEFAULT_CATALOG

    return {product.id: product for product in DEFAULT_CATALOG}


@pytest.fixture()
def slots():
    from storefront.slots.fake_adapter import MemorySlotStore

    return MemorySlotStore()


@pytest.fixture()
def cart_store(slots):
    from storefront.cart.persistence import CartPersistence
    from storefront.cart.store import CartStore

    return CartStore(CartPersistence(slots))


@pytest.fixture()
def confirmer():
    from storefront.payments.fake_adapter import FakeConfirmer

    return FakeConfirmer()


@pytest.fixture()
def backend(confirmer):
    from storefront.backend.fake_adapter import FakeBackend

    return FakeBackend(on_intent_created=confirmer.register_intent)


@pytest.fixture()
def handoff(slots):
    from storefront.checkout.handoff import HandoffSlots

    return HandoffSlots(slots)


@pytest.fixture()
def orchestrator(cart_store, backend, confirmer, handoff):
    from storefront.checkout.order_creation import OrderCreationAdapter
    from storefront.checkout.orchestrator import CheckoutOrchestrator

    return CheckoutOrchestrator(
        cart_store,
        backend=backend,
        confirmer=confirmer,
        order_creation=OrderCreationAdapter(backend, sleep=lambda _: None),
        handoff=handoff,
        currency="nzd",
    )
