"""FastAPI dependency injection functions."""

from .get_relay_service import get_relay_service, get_upstream_client

__all__ = [
    "get_relay_service",
    "get_upstream_client",
]
