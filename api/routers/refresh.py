"""Manual refresh and scheduler job endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from edgefinder.entitlements import Tier, filter_for_tier

router = APIRouter()


@router.post("/refresh")
async def refresh_now(
    request: Request,
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
) -> dict[str, Any]:
    """
    Run a refresh immediately.

    Returns the refresh summary plus the edges and movements it found,
    filtered for the caller's tier. Waits for a refresh already in
    progress, then runs its own.
    """
    pipeline = request.app.state.app_state.pipeline
    result = await pipeline.refresh()
    response = result.summary()
    response["results"] = filter_for_tier(result, tier)
    return response


@router.get("/jobs/status")
async def get_jobs_status(request: Request) -> dict[str, Any]:
    """Status of all scheduled jobs."""
    scheduler = request.app.state.app_state.scheduler
    if scheduler is None:
        return {"scheduler_running": False, "jobs": []}

    jobs = []
    for job_id, status in scheduler.get_job_status().items():
        jobs.append({
            "job_id": job_id,
            "name": status.get("name", job_id),
            "last_status": status.get("last_status", "pending"),
            "last_run": status["last_run"].isoformat() if status.get("last_run") else None,
            "next_run": status["next_run"].isoformat() if status.get("next_run") else None,
            "error": status.get("last_error"),
            "run_count": status.get("run_count", 0),
        })

    return {"scheduler_running": scheduler.is_running, "jobs": jobs}


@router.post("/jobs/{job_id}/trigger")
async def trigger_job(request: Request, job_id: str) -> dict[str, Any]:
    """
    Manually trigger a scheduled job to run immediately.

    Args:
        job_id: ID of the job to trigger (refresh_odds, health_check)
    """
    scheduler = request.app.state.app_state.scheduler
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")

    if not scheduler.trigger_job(job_id):
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    return {"job_id": job_id, "triggered": True}
