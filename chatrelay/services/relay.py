"""Relay service: bounds the conversation and proxies it to the upstream provider."""

import asyncio
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
from pydantic import ValidationError

from chatrelay.core.config import settings
from chatrelay.core.exceptions import (
    InvalidRequestError,
    UpstreamError,
    UpstreamTimeoutError,
)
from chatrelay.core.logging import setup_logger
from chatrelay.models.chat import ChatMessagePayload, ChatRequest
from chatrelay.services.sse import reframe_stream
from chatrelay.services.upstream import UpstreamClient

logger = setup_logger(__name__)

MESSAGES_REQUIRED = "Messages are required and must be an array"


class RelayStream:
    """
    Normalized frames relayed from one upstream streamed response.

    Owns that response: it is released when the frames are exhausted, when
    relaying fails, and on :meth:`aclose`, whether or not iteration started.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._frames: Optional[AsyncGenerator[str, None]] = None

    def __aiter__(self) -> "RelayStream":
        return self

    async def __anext__(self) -> str:
        if self._frames is None:
            self._frames = self._relay()
        return await self._frames.__anext__()

    @property
    def is_closed(self) -> bool:
        return self._response.is_closed

    async def aclose(self) -> None:
        if self._frames is not None:
            await self._frames.aclose()
        await self._response.aclose()

    async def _relay(self) -> AsyncGenerator[str, None]:
        try:
            async for frame in reframe_stream(self._response.aiter_bytes()):
                yield frame
            logger.info("Streaming completed")
        except asyncio.CancelledError:
            logger.info("Client disconnected from relay stream. Closing upstream.")
            raise
        except httpx.TimeoutException as e:
            logger.error(f"Upstream stream timed out: {e}")
            raise UpstreamTimeoutError("Request timeout") from e
        except httpx.HTTPError as e:
            logger.error(f"Streaming error: {e}", exc_info=True)
            raise UpstreamError(
                "Upstream stream failed", details={"reason": str(e) or type(e).__name__}
            ) from e
        finally:
            await self._response.aclose()


class RelayService:
    """Stateless per request: owns only the buffers of the exchange in flight."""

    def __init__(
        self,
        upstream: UpstreamClient,
        context_window: int = settings.CONTEXT_WINDOW_MESSAGES,
    ) -> None:
        self._upstream = upstream
        self.context_window = context_window

    @staticmethod
    def parse_request(body: Any) -> ChatRequest:
        """
        Validate a decoded request body.

        Args:
            body: The JSON-decoded request body

        Returns:
            ChatRequest: The validated request

        Raises:
            InvalidRequestError: If `messages` is absent, not a list, empty, or
            any other field has the wrong shape
        """
        if not isinstance(body, dict):
            raise InvalidRequestError(
                MESSAGES_REQUIRED, details={"reason": "Request body must be a JSON object"}
            )

        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise InvalidRequestError(MESSAGES_REQUIRED)

        try:
            return ChatRequest.model_validate(body)
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRequestError("Invalid request body", details={"reason": reason}) from e

    def bound_context(self, messages: List[ChatMessagePayload]) -> List[Dict[str, str]]:
        """Keep only the most recent messages, oldest first, as `{role, content}` pairs."""
        window = messages[-self.context_window:]
        return [{"role": m.role, "content": m.content} for m in window]

    async def open_stream(self, request: ChatRequest) -> RelayStream:
        """
        Start the upstream stream and return its normalized frames.

        Every failure that can happen before the first byte is sent downstream
        is raised from here, so callers can still answer with a JSON error.

        Raises:
            UpstreamTimeoutError: If the upstream deadline is exceeded
            UpstreamError: If the upstream call fails or answers non-success
        """
        window = self.bound_context(request.messages)
        logger.info(
            f"Relaying streamed request: {len(request.messages)} messages "
            f"({len(window)} forwarded), requested temperature={request.temperature}, "
            f"maxTokens={request.max_tokens}"
        )
        response = await self._upstream.open_stream(window)
        return RelayStream(response)

    async def complete(self, request: ChatRequest) -> Dict[str, Any]:
        """Relay a non-streamed request and return the upstream JSON unchanged."""
        window = self.bound_context(request.messages)
        logger.info(
            f"Relaying non-streamed request: {len(request.messages)} messages "
            f"({len(window)} forwarded)"
        )
        data = await self._upstream.complete(window)
        logger.info("Non-streaming completion successful")
        return data
