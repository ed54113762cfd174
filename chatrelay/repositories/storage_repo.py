"""Repository for the local key-value store with Protocol."""

from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from chatrelay.core.logging import setup_logger
from chatrelay.models.storage_record import StorageRecordModel

logger = setup_logger(__name__)


class KeyValueStoreProtocol(Protocol):
    """Protocol for an opaque key-value blob store."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...


class SqlKeyValueStore:
    """Key-value store backed by the chat_storage table."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize repository with a session factory."""
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        """Get the blob stored under key."""
        with self.session_factory() as session:
            result = session.execute(
                select(StorageRecordModel.value).where(StorageRecordModel.key == key)
            )
            return result.scalar_one_or_none()

    def set(self, key: str, value: str) -> None:
        """Insert or replace the blob stored under key."""
        with self.session_factory() as session:
            record = session.get(StorageRecordModel, key)
            if record is None:
                session.add(StorageRecordModel(key=key, value=value))
            else:
                record.value = value
                record.updated_at = datetime.now(timezone.utc)
            session.commit()
        logger.debug(f"Persisted {len(value)} bytes under key {key}")

    def delete(self, key: str) -> bool:
        """Delete the blob stored under key."""
        with self.session_factory() as session:
            record = session.get(StorageRecordModel, key)
            if record is None:
                return False
            session.delete(record)
            session.commit()
        logger.info(f"Deleted storage key: {key}")
        return True


class InMemoryKeyValueStore:
    """Non-persistent key-value store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None
