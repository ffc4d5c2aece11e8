"""Health check endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns status of all system components.
    """
    app_state = request.app.state.app_state

    components = app_state.get_health_status()
    is_healthy = components.get("initialized", False) and not components.get("init_error")

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now().isoformat(),
        "components": components,
    }


@router.get("/health/sources")
async def sources_health(request: Request) -> dict[str, Any]:
    """Live health of the upstream odds and injury feeds."""
    app_state = request.app.state.app_state
    health = await app_state.pipeline.health_check()

    return {
        "status": health.status,
        "sources": {name: h.to_dict() for name, h in health.sources.items()},
        "timestamp": health.timestamp.isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """
    Liveness probe.

    Returns 200 if the service is alive (even if not fully ready).
    """
    return {
        "alive": True,
        "timestamp": datetime.now().isoformat(),
    }
