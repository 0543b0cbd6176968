import threading
from typing import Any

from config_relay.base import PropertySnapshot, PropertyStore
from config_relay.errors import StoreUnavailable
from config_relay.properties import parse_properties


class MemoryPropertyStore(PropertyStore):
    """
    Property store kept in process memory.

    Every commit bumps an integer revision which is used as the version.
    """

    def __init__(self, text: str = "", strict: bool = False) -> None:
        # (text, revision), always replaced as a pair
        self._head = (text, 1 if text else 0)
        self.strict = strict
        self.available = True
        self._commit_lock = threading.Lock()

    @property
    def text(self) -> str:
        return self._head[0]

    @property
    def revision(self) -> int:
        return self._head[1]

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryPropertyStore(...)")
        else:
            with p.group(4, "MemoryPropertyStore(", ")"):
                p.breakable()
                p.text(f"revision={self.revision},")
                p.breakable()
                p.text(f"available={self.available},")
                p.breakable()

    def commit(self, text: str) -> str:
        with self._commit_lock:
            revision = self._head[1] + 1
            self._head = (text, revision)
        return str(revision)

    def read(self) -> PropertySnapshot:
        if not self.available:
            raise StoreUnavailable("memory store is marked unavailable")
        text, revision = self._head
        if revision == 0:
            raise StoreUnavailable("memory store has no commits yet")

        properties = parse_properties(text, strict=self.strict, source=f"memory@{revision}")
        return PropertySnapshot(properties, version=str(revision))


def create_memory_property_store(text: str = "", strict: bool = False) -> MemoryPropertyStore:
    return MemoryPropertyStore(text, strict=strict)
