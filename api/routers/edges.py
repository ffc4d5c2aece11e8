"""Edge endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from edgefinder.config.constants import sport_label
from edgefinder.entitlements import Tier, filter_edges

router = APIRouter()


@router.get("/edges")
async def get_edges(
    request: Request,
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
    sport: Optional[str] = Query(None, description="Sport key (basketball_nba) or label (NBA)"),
    min_ev: float = Query(0.0, description="Minimum EV percentage (pro only)"),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of edges to return"),
) -> dict[str, Any]:
    """
    Get current edges, sorted by EV descending.

    Free callers see edges from the free books only, without EV or
    confidence; the EV filter is ignored for them.
    """
    pipeline = request.app.state.app_state.pipeline
    edges = await pipeline.get_edges()

    if sport:
        wanted = sport.lower()
        edges = [
            e for e in edges
            if e.sport_key.lower() == wanted or sport_label(e.sport_key).lower() == wanted
        ]

    if tier.is_pro and min_ev > 0:
        edges = [e for e in edges if e.ev >= min_ev]

    visible = filter_edges(edges, tier)[:limit]
    result = pipeline.last_result

    return {
        "tier": tier.value,
        "count": len(visible),
        "edges": visible,
        "last_refresh": result.refreshed_at.isoformat() if result else None,
    }
