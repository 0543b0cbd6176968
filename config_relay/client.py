import enum
import logging
import threading
from typing import Any, Callable

from config_relay.base import EMPTY_SNAPSHOT, PropertySnapshot
from config_relay.errors import ClientNotReady, RefreshInProgress
from config_relay.server import DEFAULT_PROFILE, ConfigServer

logger = logging.getLogger(__name__)

Fetcher = Callable[[], PropertySnapshot]
Consumer = Callable[[str, str | None], None]


class LocalFetcher:
    """Fetches snapshots from a ConfigServer living in the same process."""

    def __init__(
        self,
        server: ConfigServer,
        application: str,
        profile: str = DEFAULT_PROFILE,
        label: str | None = None,
    ) -> None:
        self.server = server
        self.application = application
        self.profile = profile
        self.label = label

    def __call__(self) -> PropertySnapshot:
        return self.server.get_snapshot(self.application, self.profile, self.label)


class SnapshotCache:
    """
    Client side cache of the last fetched snapshot.

    `replace` is the only mutator. Snapshots are immutable and swapped under
    a lock, so readers see either the old or the new snapshot as a whole.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = EMPTY_SNAPSHOT
        self._previous = EMPTY_SNAPSHOT

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SnapshotCache(...)")
        else:
            with p.group(4, "SnapshotCache(", ")"):
                p.breakable()
                p.text("current=")
                p.pretty(self._current)
                p.breakable()

    def get(self) -> PropertySnapshot:
        with self._lock:
            return self._current

    def previous(self) -> PropertySnapshot:
        with self._lock:
            return self._previous

    def replace(self, new: PropertySnapshot) -> list[str]:
        """Install `new` as the current snapshot and return the changed keys."""
        with self._lock:
            changed = self._current.diff(new)
            self._previous = self._current
            self._current = new
        return changed


class Binding:
    """
    A consumer visible value bound to a single property key.

    The value only changes when the owning client refreshes and the key is
    among the changed keys. Bindings never fetch anything themselves.
    """

    def __init__(self, key: str, value: str | None = None) -> None:
        self.key = key
        self._value = value
        self._consumers: list[Consumer] = []

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        p.text(f"Binding(key={self.key!r}, value={self._value!r})")

    def resolve(self) -> str | None:
        return self._value

    def subscribe(self, consumer: Consumer) -> None:
        self._consumers.append(consumer)

    def on_refreshed(self, new_value: str | None) -> None:
        self._value = new_value
        for consumer in list(self._consumers):
            try:
                consumer(self.key, new_value)
            except Exception:
                logger.exception("Consumer %r of %s failed", consumer, self.key)


class ClientState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPED = "bootstrapped"
    READY = "ready"
    REFRESHING = "refreshing"
    BOOTSTRAP_FAILED = "bootstrap_failed"


class ConfigClient:
    """
    Fetches, caches and hands out bindings for a remote set of properties.

    Nothing changes on the client until `refresh` is called explicitly.
    Concurrent refreshes are rejected with RefreshInProgress.
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher
        self.cache = SnapshotCache()
        self.state = ClientState.UNINITIALIZED
        self._bindings: dict[str, list[Binding]] = {}
        self._lock = threading.RLock()
        self._refresh_lock = threading.Lock()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("ConfigClient(...)")
        else:
            with p.group(4, "ConfigClient(", ")"):
                p.breakable()
                p.text(f"state={self.state.value},")
                p.breakable()
                p.text("cache=")
                p.pretty(self.cache)
                p.text(",")
                p.breakable()
                p.text(f"bindings={sorted(self._bindings)}")
                p.breakable()

    def bootstrap(self) -> PropertySnapshot:
        """Perform the initial fetch. May be retried after a failure."""
        with self._refresh_lock:
            try:
                snapshot = self.fetcher()
            except Exception:
                # A ready client keeps serving its cache
                if self.state in (ClientState.UNINITIALIZED, ClientState.BOOTSTRAP_FAILED):
                    self.state = ClientState.BOOTSTRAP_FAILED
                logger.exception("Bootstrap failed")
                raise

            with self._lock:
                changed = self.cache.replace(snapshot)
                self.state = ClientState.BOOTSTRAPPED
                self._apply(changed, snapshot)
                self.state = ClientState.READY

        logger.info(
            "Bootstrapped at version %s with %d properties", snapshot.version, len(snapshot)
        )
        return snapshot

    def bind(self, key: str, consumer: Consumer | None = None) -> Binding:
        with self._lock:
            binding = Binding(key, self.cache.get().get(key))
            if consumer is not None:
                binding.subscribe(consumer)
            self._bindings.setdefault(key, []).append(binding)
        return binding

    def bindings(self) -> dict[str, list[Binding]]:
        with self._lock:
            return {key: list(bindings) for key, bindings in self._bindings.items()}

    def get(self, key: str) -> str | None:
        return self.cache.get().get(key)

    def snapshot(self) -> PropertySnapshot:
        return self.cache.get()

    def _apply(self, changed: list[str], snapshot: PropertySnapshot) -> None:
        for key in changed:
            for binding in self._bindings.get(key, ()):
                binding.on_refreshed(snapshot.get(key))

    def refresh(self) -> list[str]:
        """
        Fetch the latest snapshot, update the cache and re-resolve every
        binding of a changed key. Returns the changed keys.

        If the fetch fails the cache and bindings keep their values and the
        error is raised.
        """
        if not self._refresh_lock.acquire(blocking=False):
            raise RefreshInProgress("a refresh is already running")
        try:
            if self.state not in (ClientState.READY, ClientState.BOOTSTRAPPED):
                raise ClientNotReady(f"cannot refresh a client in state {self.state.value}")

            self.state = ClientState.REFRESHING
            try:
                snapshot = self.fetcher()
            except Exception:
                self.state = ClientState.READY
                logger.warning("Refresh failed, keeping version %s", self.cache.get().version)
                raise

            with self._lock:
                changed = self.cache.replace(snapshot)
                self._apply(changed, snapshot)
                self.state = ClientState.READY
        finally:
            self._refresh_lock.release()

        logger.info("Refreshed to version %s, changed keys: %s", snapshot.version, changed)
        return changed


def create_local_client(
    server: ConfigServer, application: str, profile: str = DEFAULT_PROFILE
) -> ConfigClient:
    return ConfigClient(LocalFetcher(server, application, profile))
