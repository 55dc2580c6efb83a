"""Cart persistence adapter — best-effort durability of the cart across reloads.

Writes are fire-and-forget: a failed write is logged and reported back as
``False`` but never raised, because the in-memory cart stays authoritative for
the session. Reads never fail startup: an empty, unreadable or corrupt slot
yields an empty cart.
"""

import json

import structlog

from storefront.cart.cart import Cart
from storefront.slots.port import SlotStore

logger = structlog.get_logger(__name__)

DEFAULT_CART_SLOT = "cart"


class CartPersistence:
    def __init__(self, slot_store: SlotStore, slot_key: str = DEFAULT_CART_SLOT) -> None:
        self.slot_store = slot_store
        self.slot_key = slot_key

    def load(self) -> Cart:
        """Rehydrate the cart from its slot, falling back to an empty cart."""
        try:
            raw = self.slot_store.read(self.slot_key)
        except Exception:
            logger.warning("cart_slot_unreadable", slot=self.slot_key, exc_info=True)
            return Cart.create()

        if raw is None:
            return Cart.create()

        try:
            data = json.loads(raw)
            if isinstance(data, list):
                # Bare list of lines, written before snapshots were versioned
                data = {"lines": data}
            return Cart.from_snapshot(data)
        except Exception:
            logger.warning("cart_slot_corrupt", slot=self.slot_key, exc_info=True)
            return Cart.create()

    def save(self, cart: Cart) -> bool:
        """Write the cart snapshot. Returns False when the write did not happen."""
        try:
            self.slot_store.write(self.slot_key, json.dumps(cart.snapshot()))
        except Exception as exc:
            logger.warning("cart_persist_failed", slot=self.slot_key, error=str(exc))
            return False
        return True

    def release(self) -> bool:
        try:
            self.slot_store.release(self.slot_key)
        except Exception as exc:
            logger.warning("cart_release_failed", slot=self.slot_key, error=str(exc))
            return False
        return True
