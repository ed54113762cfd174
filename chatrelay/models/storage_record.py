"""SQLAlchemy ORM model for the local key-value store."""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, String, Text

from chatrelay.db.database import Base


class StorageRecordModel(Base):
    """ORM model for chat_storage table: one opaque blob per key."""

    __tablename__ = "chat_storage"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StorageRecordModel(key={self.key}, size={len(self.value or '')})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
