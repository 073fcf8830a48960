"""
Health check endpoints for monitoring and orchestration.

The broker keeps no state of its own, so readiness only depends on Atlas
accepting the configured API key.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from atlas_broker.config.logging import get_logger
from atlas_broker.config.settings import settings
from atlas_broker.services.atlas_client import atlas_client

router = APIRouter()
logger = get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def health_check():
    """Report version and environment of the running broker."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "atlas_group_id": settings.atlas_group_id or None,
        "timestamp": _timestamp(),
    }


@router.get("/live")
async def liveness():
    """
    Kubernetes liveness check.
    The process answers, nothing else is checked.
    """
    return {"status": "alive", "timestamp": _timestamp()}


@router.get("/startup")
async def startup():
    """
    Kubernetes startup check.
    Fails until an Atlas project and API key are configured.
    """
    if not settings.atlas_configured:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "starting", "atlas": "not_configured", "timestamp": _timestamp()},
        )
    return {"status": "started", "atlas": "configured", "timestamp": _timestamp()}


@router.get("/ready")
async def readiness():
    """
    Kubernetes readiness check.
    Reads the Atlas project with the configured API key.
    """
    atlas_reachable = await atlas_client.ping()

    if not atlas_reachable:
        logger.warning("readiness_check_failed", atlas_group_id=settings.atlas_group_id)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "atlas": "unhealthy", "timestamp": _timestamp()},
        )

    return {"status": "ready", "atlas": "healthy", "timestamp": _timestamp()}
