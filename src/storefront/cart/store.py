"""Cart store — the single, injectable owner of a shopper's cart.

Every consumer (header badge, cart panel, checkout summary) reads through one
``CartStore`` and subscribes for change notifications. Observers get the
domain events of each mutation and a read-only snapshot; they cannot reach
the aggregate itself.
"""

import threading
from collections.abc import Callable

import structlog

from storefront.cart.cart import Cart
from storefront.cart.persistence import CartPersistence
from storefront.slots import get_slot_store

logger = structlog.get_logger(__name__)

Observer = Callable[["CartStore", list], None]


class CartStore:
    def __init__(self, persistence: CartPersistence | None = None) -> None:
        self.persistence = persistence or CartPersistence(get_slot_store())
        self._cart: Cart = self.persistence.load()
        self._observers: list[Observer] = []
        self.persistence_failures = 0
        self._lock = threading.RLock()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def lines(self) -> list[dict]:
        return self._cart.snapshot()["lines"]

    def line_for(self, product_id) -> dict | None:
        line = self._cart.line_for(product_id)
        return line.to_snapshot() if line else None

    def total(self) -> int:
        return self._cart.total()

    def item_count(self) -> int:
        return self._cart.item_count()

    def is_empty(self) -> bool:
        return self._cart.is_empty()

    def snapshot(self) -> dict:
        """Copy of the cart contents; later mutations do not affect it."""
        return self._cart.snapshot()

    # -------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    # Requests for one session may run on different worker threads
    def add_line(self, product, quantity=1) -> None:
        with self._lock:
            self._cart.add_line(product, quantity)
            self._commit()

    def set_quantity(self, product_id, quantity) -> None:
        with self._lock:
            self._cart.set_quantity(product_id, quantity)
            self._commit()

    def remove_line(self, product_id) -> None:
        with self._lock:
            self._cart.remove_line(product_id)
            self._commit()

    def clear(self) -> None:
        with self._lock:
            self._cart.clear()
            self._commit(release=True)

    def _commit(self, release: bool = False) -> None:
        events = list(self._cart._events)
        self._cart._events.clear()

        if release:
            stored = self.persistence.release()
        else:
            stored = self.persistence.save(self._cart)
        if not stored:
            self.persistence_failures += 1

        for observer in list(self._observers):
            try:
                observer(self, events)
            except Exception:
                logger.exception("cart_observer_failed", observer=repr(observer))
