"""Authentication middleware."""

import secrets
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from chatrelay.core.config import settings
from chatrelay.core.cors import build_cors_headers
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware to check for a valid Ai-Token header when AUTH_TOKEN is set."""

    def __init__(self, app: ASGIApp, token: Optional[str] = None):
        super().__init__(app)
        self.token = settings.AUTH_TOKEN if token is None else token
        self.cors_headers = build_cors_headers(auth_enabled=True)
        # Endpoints that don't require authentication
        self.excluded_paths = {"/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        """Process the request and check authentication."""

        if not self.token:
            return await call_next(request)

        # Preflight requests never carry credentials
        if request.method == "OPTIONS" or request.url.path in self.excluded_paths:
            logger.debug(
                f"Skipping authentication for {request.method} {request.url.path}"
            )
            return await call_next(request)

        auth_token = request.headers.get("Ai-Token")

        if not auth_token:
            logger.warning(f"Missing Ai-Token header for path: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing Ai-Token header"},
                headers=self.cors_headers,
            )

        if not secrets.compare_digest(auth_token, self.token):
            logger.warning(f"Invalid Ai-Token for path: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid authentication token"},
                headers=self.cors_headers,
            )

        logger.debug(f"Authentication successful for path: {request.url.path}")
        return await call_next(request)
