"""Short-lived handoff slots between checkout and the confirmation views.

On success the checkout leaves a flat record for the confirmation page; on a
terminal failure it leaves one for the failure page. Each record is read
exactly once: taking it clears the slot.

Writes are best-effort. A slot that cannot be written is logged and skipped;
the checkout outcome itself never depends on it.
"""

import json

import structlog

from storefront.slots import get_slot_store
from storefront.slots.port import SlotStore, SlotStoreError

logger = structlog.get_logger(__name__)

SUCCESS_SLOT = "paymentSuccess"
ERROR_SLOT = "paymentError"


class HandoffSlots:
    def __init__(self, store: SlotStore | None = None, namespace: str | None = None) -> None:
        self.store = store or get_slot_store()
        self.namespace = namespace

    def _key(self, slot: str) -> str:
        return f"{self.namespace}:{slot}" if self.namespace else slot

    def publish_success(self, record: dict) -> bool:
        return self._publish(SUCCESS_SLOT, record)

    def publish_error(self, record: dict) -> bool:
        return self._publish(ERROR_SLOT, record)

    def take_success(self) -> dict | None:
        return self._take(SUCCESS_SLOT)

    def take_error(self) -> dict | None:
        return self._take(ERROR_SLOT)

    def _publish(self, slot: str, record: dict) -> bool:
        key = self._key(slot)
        try:
            self.store.write(key, json.dumps(record))
        except (SlotStoreError, TypeError, ValueError) as exc:
            logger.warning("handoff_write_failed", slot=key, order_id=record.get("orderId"), error=str(exc))
            return False
        return True

    def _take(self, slot: str) -> dict | None:
        key = self._key(slot)
        try:
            raw = self.store.read(key)
        except SlotStoreError as exc:
            logger.warning("handoff_read_failed", slot=key, error=str(exc))
            return None
        if raw is None:
            return None

        try:
            self.store.release(key)
        except SlotStoreError as exc:
            logger.warning("handoff_release_failed", slot=key, error=str(exc))

        try:
            record = json.loads(raw)
        except ValueError:
            logger.warning("handoff_record_corrupt", slot=key)
            return None
        return record if isinstance(record, dict) else None
