"""Injury report endpoint."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from edgefinder.data.sources import DataSourceError

router = APIRouter()


@router.get("/injuries")
async def get_injuries(
    request: Request,
    sport: str = Query("basketball_nba", description="Sport key, e.g. basketball_nba"),
) -> dict[str, Any]:
    """
    Current injury report for a sport.

    Sports ESPN does not cover return an empty list.
    """
    pipeline = request.app.state.app_state.pipeline
    try:
        injuries = await pipeline.get_injuries(sport)
    except DataSourceError as e:
        raise HTTPException(status_code=503, detail=f"Injury feed unavailable: {e}")

    return {
        "sport": sport,
        "count": len(injuries),
        "injuries": [injury.to_dict() for injury in injuries],
    }
