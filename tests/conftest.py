import inspect
import json
from typing import Callable, Iterable

import httpx
import pytest
from fastapi.testclient import TestClient

from chatrelay.dependencies.get_relay_service import get_upstream_client
from chatrelay.main import app
from chatrelay.repositories import InMemoryKeyValueStore
from chatrelay.runtime.store import ChatStore
from chatrelay.services.upstream import UpstreamClient

UPSTREAM_URL = "https://upstream.test/api/paas/v4/chat/completions"


def delta_frame(content: str) -> str:
    chunk = {"id": "chatcmpl-1", "choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(chunk)}\n\n"


async def aiter_chunks(chunks: Iterable[bytes]):
    for chunk in chunks:
        yield chunk


def stream_response(body: str, chunk_size: int = 0) -> httpx.Response:
    """A text/event-stream response whose body arrives in chunks of chunk_size bytes."""
    data = body.encode("utf-8")
    if chunk_size:
        chunks = [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]
    else:
        chunks = [data]
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=aiter_chunks(chunks),
    )


class UpstreamRecorder:
    """Fake upstream provider that records every request it receives."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responder(request)
        if inspect.isawaitable(response):
            response = await response
        return response


def make_upstream_client(recorder: UpstreamRecorder, **overrides) -> UpstreamClient:
    options = dict(
        api_url=UPSTREAM_URL,
        api_key="test-key",
        model="glm-4.5-flash",
        temperature=0.3,
        max_tokens=1024,
        accept_language="es-CO,es",
        stream_timeout=5.0,
        request_timeout=5.0,
    )
    options.update(overrides)
    return UpstreamClient(transport=httpx.MockTransport(recorder), **options)


@pytest.fixture
def relay_app():
    """Install a fake upstream on the app; returns a factory for (TestClient, recorder)."""

    def _install(responder, **overrides):
        recorder = UpstreamRecorder(responder)
        upstream = make_upstream_client(recorder, **overrides)
        app.dependency_overrides[get_upstream_client] = lambda: upstream
        return TestClient(app), recorder

    yield _install
    app.dependency_overrides.clear()


@pytest.fixture
def memory_storage() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(memory_storage) -> ChatStore:
    chat_store = ChatStore(memory_storage)
    chat_store.load()
    return chat_store
