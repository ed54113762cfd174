"""HTTP client the session runtime uses to talk to the relay endpoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterable, AsyncIterator, Dict, List, Optional

import httpx

from chatrelay.core.config import settings
from chatrelay.core.exceptions import MalformedFrameError, RelayRequestError
from chatrelay.core.logging import setup_logger
from chatrelay.services.sse import LineBuffer, parse_data_line

logger = setup_logger(__name__)


class RelayClient:
    """Posts conversations to the relay and exposes the streamed body."""

    def __init__(
        self,
        relay_url: str = settings.RELAY_URL,
        *,
        auth_token: str = settings.AUTH_TOKEN,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.relay_url = relay_url
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport, timeout=self.timeout
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Ai-Token"] = self.auth_token
        return headers

    @asynccontextmanager
    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open a streamed completion against the relay.

        Yields:
            The response body as an async iterator of raw byte chunks. The
            response is released when the context exits, however it exits.

        Raises:
            RelayRequestError: If the relay answers with a non-success status
        """
        request = self.client.build_request(
            "POST",
            self.relay_url,
            headers=self._headers(),
            json={
                "messages": messages,
                "stream": True,
                "temperature": temperature,
                "maxTokens": max_tokens,
            },
        )
        response = await self.client.send(request, stream=True)
        try:
            logger.debug(f"Relay response status: {response.status_code}")
            if not response.is_success:
                await response.aread()
                raise RelayRequestError(
                    _error_text(response), status_code=response.status_code
                )
            yield response.aiter_bytes()
        finally:
            await response.aclose()


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "Error in server response"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return "Error in server response"


async def iter_deltas(chunks: AsyncIterable[bytes]) -> AsyncGenerator[str, None]:
    """Decode normalized relay frames into text deltas, in arrival order."""
    buffer = LineBuffer()

    def _decode(lines: List[str]) -> List[str]:
        deltas = []
        for line in lines:
            try:
                frame = parse_data_line(line)
            except MalformedFrameError as e:
                logger.error(f"Error parsing SSE data: {e.details.get('frame')}")
                continue
            if frame is None or frame.done or not frame.content:
                continue
            deltas.append(frame.content)
        return deltas

    async for chunk in chunks:
        for delta in _decode(buffer.feed(chunk)):
            yield delta

    for delta in _decode(buffer.flush()):
        yield delta
