"""Cross-origin headers attached to every relay response."""

from typing import Dict

from chatrelay.core.config import settings


def build_cors_headers(auth_enabled: bool = False) -> Dict[str, str]:
    """
    Permissive cross-origin headers.

    Preflights must also allow the Ai-Token header when token auth is on,
    otherwise browsers refuse to send it.
    """
    allowed_headers = "Content-Type, Authorization"
    if auth_enabled:
        allowed_headers += ", Ai-Token"
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": allowed_headers,
    }


CORS_HEADERS = build_cors_headers(auth_enabled=bool(settings.AUTH_TOKEN))
