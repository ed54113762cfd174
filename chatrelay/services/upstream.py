"""HTTP client for the upstream chat completion provider."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx

from chatrelay.core.config import Settings
from chatrelay.core.exceptions import UpstreamError, UpstreamTimeoutError
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)


class UpstreamClient:
    """Sends chat completion requests to the provider with a fixed model."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        accept_language: str = "",
        stream_timeout: float = 30.0,
        request_timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.accept_language = accept_language
        self.stream_timeout = stream_timeout
        self.request_timeout = request_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "UpstreamClient":
        return cls(
            api_url=settings.UPSTREAM_API_URL,
            api_key=settings.UPSTREAM_API_KEY,
            model=settings.UPSTREAM_MODEL,
            temperature=settings.UPSTREAM_TEMPERATURE,
            max_tokens=settings.UPSTREAM_MAX_TOKENS,
            accept_language=settings.UPSTREAM_ACCEPT_LANGUAGE,
            stream_timeout=settings.STREAM_TIMEOUT_SECONDS,
            request_timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.accept_language:
            headers["Accept-Language"] = self.accept_language
        return headers

    def build_payload(
        self, messages: List[Dict[str, str]], *, stream: bool
    ) -> Dict[str, Any]:
        """Build the provider request body."""
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": stream,
        }

    async def _send(
        self, messages: List[Dict[str, str]], *, stream: bool, timeout: float
    ) -> httpx.Response:
        request = self.client.build_request(
            "POST",
            self.api_url,
            headers=self._headers(),
            json=self.build_payload(messages, stream=stream),
            timeout=httpx.Timeout(timeout),
        )
        try:
            # The deadline covers obtaining the response; body reads are bounded by the httpx timeout
            response = await asyncio.wait_for(
                self.client.send(request, stream=True), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Upstream request timed out after {timeout}s")
            raise UpstreamTimeoutError(
                "Request timeout", details={"reason": f"No response within {timeout:g}s"}
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Upstream request failed: {e}")
            raise UpstreamError(
                "Upstream request failed", details={"reason": str(e) or type(e).__name__}
            ) from e

        logger.info(f"Upstream response status: {response.status_code}")

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
            logger.error(f"Upstream API error: {response.status_code} {body}")
            raise UpstreamError(
                "Upstream request failed",
                upstream_status=response.status_code,
                body=body,
                details={"reason": f"API request failed: {response.status_code} {body}"},
            )
        return response

    async def open_stream(self, messages: List[Dict[str, str]]) -> httpx.Response:
        """
        Start a streamed completion.

        Args:
            messages: The bounded conversation window as `{role, content}` pairs

        Returns:
            httpx.Response: Response whose headers have arrived with a success
            status. The caller owns it and must close it.

        Raises:
            UpstreamTimeoutError: If no response arrives within the stream deadline
            UpstreamError: On transport failure or non-success status
        """
        return await self._send(messages, stream=True, timeout=self.stream_timeout)

    async def complete(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """Run a non-streamed completion and return the provider's JSON unchanged."""
        response = await self._send(
            messages, stream=False, timeout=self.request_timeout
        )
        try:
            body = await asyncio.wait_for(response.aread(), timeout=self.request_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(
                "Request timeout",
                details={"reason": f"No response within {self.request_timeout:g}s"},
            ) from e
        finally:
            await response.aclose()

        try:
            return json.loads(body)
        except ValueError as e:
            logger.error(f"Upstream returned a non-JSON body: {body[:200]!r}")
            raise UpstreamError(
                "Upstream request failed",
                body=body.decode("utf-8", errors="replace"),
                details={"reason": "Upstream returned invalid JSON"},
            ) from e
