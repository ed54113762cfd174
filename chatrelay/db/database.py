from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from chatrelay.core.config import settings


class Base(DeclarativeBase):
    pass


def create_storage_engine(url: str = settings.STORAGE_URL) -> Engine:
    """Create the engine backing the local key-value store."""
    parsed = make_url(url)
    connect_args = {}
    if parsed.drivername.startswith("sqlite"):
        # The runtime may persist from a different thread than the one that opened it
        connect_args["check_same_thread"] = False
    return create_engine(parsed, echo=False, future=True, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        engine,
        expire_on_commit=False,
        autoflush=False,
    )


def init_storage(engine: Engine) -> None:
    """Create the storage tables if they don't exist."""
    # Register ORM models on Base.metadata
    from chatrelay.models.storage_record import StorageRecordModel  # noqa: F401

    Base.metadata.create_all(engine)
