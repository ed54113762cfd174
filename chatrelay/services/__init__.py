"""Relay services."""

from .relay import RelayService, RelayStream
from .upstream import UpstreamClient
