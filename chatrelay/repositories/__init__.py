"""Repository classes for storage operations."""

from .storage_repo import (
    InMemoryKeyValueStore,
    KeyValueStoreProtocol,
    SqlKeyValueStore,
)

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStoreProtocol",
    "SqlKeyValueStore",
]
