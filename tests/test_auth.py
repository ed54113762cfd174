import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chatrelay.core.auth import AuthenticationMiddleware


def build_app(token: str) -> FastAPI:
    app = FastAPI()
    app.add_middleware(AuthenticationMiddleware, token=token)

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post("/api/chat")
    async def chat():
        return {"ok": True}

    @app.options("/api/chat")
    async def chat_options():
        return {}

    return app


@pytest.fixture
def client() -> TestClient:
    return TestClient(build_app("secret"))


def test_missing_token_rejected(client):
    response = client.post("/api/chat")
    assert response.status_code == 401
    assert response.json() == {"detail": "Missing Ai-Token header"}


def test_wrong_token_rejected(client):
    response = client.post("/api/chat", headers={"Ai-Token": "nope"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid authentication token"}


def test_valid_token_accepted(client):
    response = client.post("/api/chat", headers={"Ai-Token": "secret"})
    assert response.status_code == 200


def test_health_and_preflight_are_open(client):
    assert client.get("/health").status_code == 200
    assert client.options("/api/chat").status_code == 200


def test_disabled_without_token():
    client = TestClient(build_app(""))
    assert client.post("/api/chat").status_code == 200


def test_rejection_carries_cors_headers(client):
    response = client.post("/api/chat", headers={"Origin": "http://localhost:3000"})
    assert response.status_code == 401
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == (
        "Content-Type, Authorization, Ai-Token"
    )
