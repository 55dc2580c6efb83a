"""Slot store port (abstract interface).

A slot is a named, client-local string value — the durable cart, the payment
success record, the payment error record. Adapters decide where slots live;
callers only read, write and release them by key.
"""

from abc import ABC, abstractmethod


class SlotStoreError(Exception):
    """A slot could not be read, written or released."""


class SlotStore(ABC):
    """Abstract key/value slot storage."""

    @abstractmethod
    def read(self, key: str) -> str | None:
        """Return the raw value stored under ``key``, or None when the slot is empty."""
        ...

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    def release(self, key: str) -> None:
        """Empty the slot. Releasing an empty slot is not an error."""
        ...
