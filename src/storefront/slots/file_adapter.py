"""File-backed slot store: one JSON file per slot inside a directory.

Slot keys are percent-encoded into file names, so distinct keys never share
a file and no key can name a path outside the directory.
"""

from pathlib import Path
from urllib.parse import quote

from storefront.slots.port import SlotStore, SlotStoreError

SUFFIX = ".json"


def file_name_for(key: str) -> str:
    return quote(key, safe="-_") + SUFFIX


class FileSlotStore(SlotStore):
    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / file_name_for(key)

    def read(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise SlotStoreError(f"Cannot read slot {key!r}: {exc}") from exc

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise SlotStoreError(f"Cannot write slot {key!r}: {exc}") from exc

    def release(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise SlotStoreError(f"Cannot release slot {key!r}: {exc}") from exc
