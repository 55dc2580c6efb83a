"""In-memory slot store for development and testing.

Can be told to fail writes or to hand back corrupt data, which is how the
cart's best-effort persistence is exercised without a real storage backend.
"""

from storefront.slots.port import SlotStore, SlotStoreError


class MemorySlotStore(SlotStore):
    """Dict-backed slot store."""

    def __init__(self) -> None:
        self.slots: dict[str, str] = {}
        self.fail_writes: bool = False
        self.failure_reason: str = "Storage quota exceeded"
        self.writes: list[str] = []

    def configure(self, fail_writes: bool, failure_reason: str = "Storage quota exceeded") -> None:
        """Configure write behaviour at runtime."""
        self.fail_writes = fail_writes
        self.failure_reason = failure_reason

    def corrupt(self, key: str, raw: str = "{not json") -> None:
        """Place unparseable data in a slot."""
        self.slots[key] = raw

    def read(self, key: str) -> str | None:
        return self.slots.get(key)

    def write(self, key: str, value: str) -> None:
        self.writes.append(key)
        if self.fail_writes:
            raise SlotStoreError(self.failure_reason)
        self.slots[key] = value

    def release(self, key: str) -> None:
        self.slots.pop(key, None)
