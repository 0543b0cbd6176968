from types import MappingProxyType
from typing import Any, Iterator, Mapping


class PropertySnapshot:
    """
    Immutable key/value properties read from a versioned store at one point
    in time, together with the version identifier they were read at.

    Snapshots are never mutated, only replaced wholesale.
    """

    __slots__ = ("_properties", "_version")

    def __init__(self, properties: Mapping[str, str], version: str) -> None:
        self._properties = MappingProxyType(dict(properties))
        self._version = version

    @property
    def properties(self) -> Mapping[str, str]:
        return self._properties

    @property
    def version(self) -> str:
        return self._version

    def get(self, key: str) -> str | None:
        return self._properties.get(key)

    def keys(self) -> list[str]:
        return list(self._properties)

    def to_dict(self) -> dict[str, str]:
        return dict(self._properties)

    def diff(self, other: "PropertySnapshot") -> list[str]:
        """
        Keys whose value differs between this snapshot and `other`.

        Changed and added keys come first in `other`'s order, followed by
        removed keys in this snapshot's order.
        """
        changed = [
            key
            for key, value in other._properties.items()
            if key not in self._properties or self._properties[key] != value
        ]
        removed = [key for key in self._properties if key not in other._properties]
        return changed + removed

    def __contains__(self, key: object) -> bool:
        return key in self._properties

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertySnapshot):
            return NotImplemented
        return self._version == other._version and dict(self._properties) == dict(
            other._properties
        )

    def __hash__(self) -> int:
        return hash((self._version, tuple(self._properties.items())))

    def __repr__(self) -> str:
        return f"PropertySnapshot(version={self._version!r}, properties={dict(self._properties)!r})"

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("PropertySnapshot(...)")
        else:
            with p.group(4, "PropertySnapshot(", ")"):
                p.breakable()
                p.text(f"version={self._version[:7]!r},")
                p.breakable()
                p.text("properties=")
                p.pretty(dict(self._properties))
                p.breakable()


EMPTY_SNAPSHOT = PropertySnapshot({}, version="")


class PropertyStore:
    """
    Reader of a versioned store of properties.

    Each read returns the properties at the current head of the store
    along with the head's version identifier.
    """

    def read(self) -> PropertySnapshot:
        """
        Read the properties at the current head.

        Raises StoreUnavailable if the store cannot be accessed and
        ParseError if its content is malformed.
        """
        raise NotImplementedError()
