"""Dependency injection functions for the relay service."""

from fastapi import Depends, Request

from chatrelay.core.config import settings
from chatrelay.services.relay import RelayService
from chatrelay.services.upstream import UpstreamClient


def get_upstream_client(request: Request) -> UpstreamClient:
    """Get the application-wide upstream client, creating it on first use."""
    client = getattr(request.app.state, "upstream_client", None)
    if client is None:
        client = UpstreamClient.from_settings(settings)
        request.app.state.upstream_client = client
    return client


def get_relay_service(
    upstream: UpstreamClient = Depends(get_upstream_client),
) -> RelayService:
    """Get relay service instance with the injected upstream client."""
    return RelayService(upstream=upstream)
