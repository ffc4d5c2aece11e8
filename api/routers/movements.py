"""Line movement endpoints."""

from typing import Any

from fastapi import APIRouter, Query, Request

from edgefinder.entitlements import Tier, filter_movements

router = APIRouter()


@router.get("/movements")
async def get_movements(
    request: Request,
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
    limit: int = Query(20, ge=1, le=50, description="Maximum number of movements to return"),
) -> dict[str, Any]:
    """
    Recent significant line movements, newest first.

    Movement alerts are a pro feature; free callers get an empty list.
    """
    pipeline = request.app.state.app_state.pipeline
    recent = pipeline.movement_detector.recent_movements(limit)
    visible = filter_movements(recent, tier)

    return {
        "tier": tier.value,
        "locked": not tier.is_pro,
        "count": len(visible),
        "movements": visible,
        "tracked_lines": pipeline.movement_detector.tracked_lines,
    }
