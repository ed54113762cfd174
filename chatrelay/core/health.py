"""Health check module for application monitoring."""

from typing import Optional

from chatrelay.core.config import settings
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)


def check_upstream_configuration() -> bool:
    """Check that the relay has what it needs to reach the upstream provider."""
    configured = bool(settings.UPSTREAM_API_URL and settings.UPSTREAM_API_KEY)
    if not configured:
        logger.warning("Upstream API URL or key is not configured")
    return configured


def get_health_status(upstream_status: Optional[bool]):
    """
    Get health status response.

    Args:
        upstream_status: Upstream configuration status (True/False) or None to skip the check
    """
    if upstream_status is None:
        # Basic health check - application is running
        return {
            "message": "Service is healthy",
            "data": {
                "status": "healthy",
                "app": settings.APP_NAME,
                "upstream": "not_checked",
            },
        }
    else:
        status = "healthy" if upstream_status else "unhealthy"
        return {
            "message": f"Service is {status}",
            "data": {
                "status": status,
                "app": settings.APP_NAME,
                "upstream": upstream_status,
                "model": settings.UPSTREAM_MODEL,
            },
        }
