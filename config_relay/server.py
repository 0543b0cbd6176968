import logging
from typing import Any, Iterable, Mapping

from config_relay.base import PropertySnapshot, PropertyStore
from config_relay.errors import NotFound

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"


class ConfigServer:
    """
    Serves property snapshots of registered applications.

    Every request reads its store afresh so callers always see the latest
    committed state. The server keeps no mutable state of its own, so
    concurrent requests need no locking.
    """

    def __init__(
        self,
        stores: Mapping[str, PropertyStore],
        profiles: Iterable[str] = (DEFAULT_PROFILE,),
    ) -> None:
        self.stores = dict(stores)
        self.profiles = tuple(profiles)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("ConfigServer(...)")
        else:
            with p.group(4, "ConfigServer(", ")"):
                p.breakable()
                p.text("stores=")
                p.pretty(self.stores)
                p.text(",")
                p.breakable()
                p.text(f"profiles={list(self.profiles)}")
                p.breakable()

    def applications(self) -> list[str]:
        return list(self.stores)

    def get_snapshot(
        self,
        application: str,
        profile: str = DEFAULT_PROFILE,
        label: str | None = None,
    ) -> PropertySnapshot:
        store = self.stores.get(application)
        if store is None:
            raise NotFound(f"unknown application {application!r}")
        if profile not in self.profiles:
            raise NotFound(f"unknown profile {profile!r} for application {application!r}")
        if label is not None:
            raise NotFound(f"unknown label {label!r}, only the default label is served")

        snapshot = store.read()
        logger.debug(
            "Serving %s/%s at version %s (%d properties)",
            application,
            profile,
            snapshot.version,
            len(snapshot),
        )
        return snapshot
