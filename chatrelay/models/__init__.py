"""Database ORM models."""

from .storage_record import StorageRecordModel

__all__ = ["StorageRecordModel"]
