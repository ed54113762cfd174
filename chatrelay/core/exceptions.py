"""Custom exception classes."""

from typing import Any, Dict, Optional


class ChatRelayException(Exception):
    """Base exception for the chat relay application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidRequestError(ChatRelayException):
    """Malformed relay input, rejected before any upstream call."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=400, details=details)


class UpstreamError(ChatRelayException):
    """The upstream provider failed or answered with a non-success status."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.upstream_status = upstream_status
        self.body = body
        details = dict(details or {})
        if upstream_status is not None:
            details.setdefault("upstream_status", upstream_status)
        super().__init__(message, status_code=502, details=details)


class UpstreamTimeoutError(ChatRelayException):
    """The upstream call exceeded its deadline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=504, details=details)


class MalformedFrameError(ChatRelayException):
    """A single streamed frame could not be decoded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=502, details=details)


class RelayRequestError(ChatRelayException):
    """The relay endpoint answered the runtime with an error response."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)


class SessionNotFoundError(ChatRelayException):
    """Session does not exist."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=404, details=details)


class SettingsValidationError(ChatRelayException):
    """Generation settings outside their allowed ranges."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=422, details=details)


class AttachmentError(ChatRelayException):
    """Attachment rejected (too many files or file too large)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=413, details=details)
