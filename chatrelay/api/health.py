"""Health check API endpoints."""

from fastapi import APIRouter, Query

from chatrelay.core.health import check_upstream_configuration, get_health_status
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    deep: bool = Query(
        default=False,
        description="Also report whether the upstream provider is configured",
    )
):
    """
    Health check endpoint with optional deep checking.

    By default this only confirms the application is running. Use
    ?deep=true to also verify the upstream API URL and key are configured.
    No request is sent upstream either way.
    """
    if not deep:
        return get_health_status(upstream_status=None)

    return get_health_status(check_upstream_configuration())
