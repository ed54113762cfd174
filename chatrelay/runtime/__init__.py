"""Client-side session runtime."""

from typing import Optional

from chatrelay.core.config import settings
from chatrelay.db.database import (
    create_session_factory,
    create_storage_engine,
    init_storage,
)
from chatrelay.repositories import KeyValueStoreProtocol, SqlKeyValueStore

from .attachments import Attachment
from .generation import GENERATION_FAILURE_NOTICE, ChatRuntime, GenerationState
from .relay_client import RelayClient
from .store import ChatStore


def create_runtime(
    storage: Optional[KeyValueStoreProtocol] = None,
    client: Optional[RelayClient] = None,
) -> ChatRuntime:
    """Build a runtime from settings, rehydrating persisted state."""
    if storage is None:
        engine = create_storage_engine(settings.STORAGE_URL)
        init_storage(engine)
        storage = SqlKeyValueStore(create_session_factory(engine))
    store = ChatStore(storage)
    store.load()
    return ChatRuntime(store, client or RelayClient(settings.RELAY_URL))


__all__ = [
    "Attachment",
    "ChatRuntime",
    "ChatStore",
    "GENERATION_FAILURE_NOTICE",
    "GenerationState",
    "RelayClient",
    "create_runtime",
]
