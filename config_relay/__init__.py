from .base import EMPTY_SNAPSHOT, PropertySnapshot, PropertyStore
from .client import Binding, ClientState, ConfigClient, LocalFetcher, SnapshotCache
from .errors import (
    ClientNotReady,
    ConfigRelayError,
    NotFound,
    ParseError,
    RefreshInProgress,
    StoreUnavailable,
)
from .impl.git import create_git_property_store
from .impl.memory import create_memory_property_store
from .impl.sql import create_sql_property_store
from .server import ConfigServer

__all__ = [
    "EMPTY_SNAPSHOT",
    "PropertySnapshot",
    "PropertyStore",
    "Binding",
    "ClientState",
    "ConfigClient",
    "LocalFetcher",
    "SnapshotCache",
    "ClientNotReady",
    "ConfigRelayError",
    "NotFound",
    "ParseError",
    "RefreshInProgress",
    "StoreUnavailable",
    "create_git_property_store",
    "create_memory_property_store",
    "create_sql_property_store",
    "ConfigServer",
]
