"""Main FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatrelay.api import chat, health
from chatrelay.core.auth import AuthenticationMiddleware
from chatrelay.core.config import settings
from chatrelay.core.cors import CORS_HEADERS
from chatrelay.core.exceptions import ChatRelayException
from chatrelay.core.logging import setup_logger
from chatrelay.services.upstream import UpstreamClient

logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting Chat Relay Application, version={app.version}")
    if getattr(app.state, "upstream_client", None) is None:
        app.state.upstream_client = UpstreamClient.from_settings(settings)
    logger.info(
        f"Relaying to {settings.UPSTREAM_API_URL} with model {settings.UPSTREAM_MODEL}"
    )

    yield

    # Shutdown
    logger.info("Shutting down Chat Relay Application")
    await app.state.upstream_client.aclose()


async def relay_exception_handler(
    request: Request, exc: ChatRelayException
) -> JSONResponse:
    """Render errors raised before a response started as `{error, details}`."""
    logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    content = {"error": exc.message}
    reason = exc.details.get("reason")
    if reason:
        content["details"] = reason
    if "upstream_status" in exc.details:
        content["upstream_status"] = exc.details["upstream_status"]
    return JSONResponse(
        status_code=exc.status_code, content=content, headers=CORS_HEADERS
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Chat API error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
        headers=CORS_HEADERS,
    )


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Streaming chat completion relay",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc" if settings.DEBUG else None,
        servers=[
            {
                "url": f"http://localhost:{settings.DOCS_PORT}",
                "description": "Local Environment",
            }
        ],
        lifespan=lifespan,
    )

    # Authentication middleware. CORS headers are set per response so that
    # OPTIONS preflights reach the chat router
    app.add_middleware(AuthenticationMiddleware)

    app.add_exception_handler(ChatRelayException, relay_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include API routers
    app.include_router(health.router)
    app.include_router(chat.router)

    return app


app = create_application()
