"""Per-sport odds slate and per-event consensus endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from edgefinder.entitlements import Tier, event_view

router = APIRouter()


def _book_priority(app_state) -> Optional[list[str]]:
    if app_state.settings is None:
        return None
    return app_state.settings.edge_detection.book_priority


@router.get("/odds")
async def get_sport_odds(
    request: Request,
    sport: str = Query("basketball_nba", description="Sport key, e.g. basketball_nba"),
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
) -> dict[str, Any]:
    """
    Every upcoming event of a sport with its book quotes and best lines.

    Free callers see the free books only; pro callers also get the
    consensus overlay and edge score per event.
    """
    app_state = request.app.state.app_state
    pipeline = app_state.pipeline
    events, consensus = await pipeline.get_slate(sport)

    book_priority = _book_priority(app_state)
    views = [
        event_view(
            event,
            consensus.get(event.event_id),
            tier,
            edge_score=pipeline.edge_score_for(event),
            book_priority=book_priority,
        )
        for event in events
    ]
    return {"sport": sport, "tier": tier.value, "count": len(views), "events": views}


@router.get("/odds/{event_id}/consensus")
async def get_event_consensus(
    request: Request,
    event_id: str,
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
) -> dict[str, Any]:
    """
    Book quotes, best lines and consensus overlays for one event.

    Consensus fair prices, hold and the edge score are pro-only.
    """
    app_state = request.app.state.app_state
    pipeline = app_state.pipeline
    result = await pipeline.get_result()

    event = result.find_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Event not found: {event_id}")

    return event_view(
        event,
        result.consensus.get(event_id),
        tier,
        edge_score=pipeline.edge_score_for(event),
        book_priority=_book_priority(app_state),
    )
