"""Slot store factory.

Provides get_slot_store() / set_slot_store() to swap implementations:
- MemorySlotStore for development and testing
- FileSlotStore when SLOT_STORE_ADAPTER=file (directory from SLOT_STORE_DIR)
"""

import os

from storefront.slots.port import SlotStore

_current_store: SlotStore | None = None


def get_slot_store() -> SlotStore:
    """Return the current slot store. Defaults to MemorySlotStore."""
    global _current_store
    if _current_store is None:
        adapter = os.environ.get("SLOT_STORE_ADAPTER", "memory")
        if adapter == "memory":
            from storefront.slots.fake_adapter import MemorySlotStore

            _current_store = MemorySlotStore()
        elif adapter == "file":
            from storefront.slots.file_adapter import FileSlotStore

            _current_store = FileSlotStore(os.environ.get("SLOT_STORE_DIR", ".storefront-slots"))
        else:
            raise ValueError(f"Unknown slot store adapter: {adapter}")
    return _current_store


def set_slot_store(store: SlotStore) -> None:
    """Override the active slot store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_slot_store() -> None:
    """Reset to default slot store."""
    global _current_store
    _current_store = None
