"""
APScheduler orchestrator for managing background jobs.

Handles:
- Odds refresh at a configurable interval
- Health monitoring of the upstream feeds
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .jobs import health_check, refresh_odds

logger = logging.getLogger(__name__)


class SchedulerOrchestrator:
    """
    Manages APScheduler lifecycle and job registration.

    Jobs:
    - refresh_odds: every ``refresh_interval_minutes`` (first run immediately)
    - health_check: every ``health_check_interval_minutes``

    A refresh never overlaps another one; a missed tick while one is
    still running is coalesced into the next.

    Example:
        >>> scheduler = SchedulerOrchestrator(settings, pipeline)
        >>> scheduler.start()
        >>> # ... application runs ...
        >>> scheduler.stop()
    """

    REFRESH_JOB = "refresh_odds"
    HEALTH_JOB = "health_check"

    def __init__(self, settings: Any, pipeline: Any):
        """
        Initialize the scheduler.

        Args:
            settings: Application settings
            pipeline: EdgePipeline instance
        """
        self.settings = settings
        self.pipeline = pipeline

        self.scheduler = AsyncIOScheduler(
            timezone=timezone.utc,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

        self._is_running = False
        self._last_result: Optional[Any] = None
        self._job_status: dict[str, dict] = {}

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    def start(self) -> None:
        """Start the scheduler with all registered jobs."""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self._register_jobs()
        self.scheduler.start()
        self._is_running = True

        logger.info("Scheduler started with jobs:")
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            next_str = next_run.strftime("%H:%M:%S") if next_run else "paused"
            logger.info(f"  - {job.id}: next run at {next_str}")

    def stop(self) -> None:
        """Gracefully shutdown the scheduler."""
        if not self._is_running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Scheduler stopped")

    def _register_jobs(self) -> None:
        """Register the refresh and health jobs."""
        sched_settings = self.settings.scheduler

        self.scheduler.add_job(
            self._refresh_odds_job,
            trigger=IntervalTrigger(minutes=sched_settings.refresh_interval_minutes),
            id=self.REFRESH_JOB,
            name="Refresh odds and edges",
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )

        self.scheduler.add_job(
            self._health_check_job,
            trigger=IntervalTrigger(minutes=sched_settings.health_check_interval_minutes),
            id=self.HEALTH_JOB,
            name="Data source health check",
            replace_existing=True,
        )

        for job_id in (self.REFRESH_JOB, self.HEALTH_JOB):
            self._job_status[job_id] = {
                "last_run": None,
                "last_status": None,
                "last_error": None,
                "run_count": 0,
            }

    async def _refresh_odds_job(self) -> None:
        self._last_result = await refresh_odds(pipeline=self.pipeline)

    async def _health_check_job(self) -> None:
        await health_check(pipeline=self.pipeline)

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        """Handle successful job execution."""
        job_id = event.job_id
        if job_id in self._job_status:
            self._job_status[job_id]["last_run"] = datetime.now()
            self._job_status[job_id]["last_status"] = "success"
            self._job_status[job_id]["last_error"] = None
            self._job_status[job_id]["run_count"] += 1

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        """Handle job execution error."""
        job_id = event.job_id
        if job_id in self._job_status:
            self._job_status[job_id]["last_run"] = datetime.now()
            self._job_status[job_id]["last_status"] = "error"
            self._job_status[job_id]["last_error"] = str(event.exception)
            self._job_status[job_id]["run_count"] += 1

        logger.error(f"Job {job_id} failed: {event.exception}")

    def get_job_status(self) -> dict[str, dict]:
        """Get status of all jobs."""
        status = {}
        for job in self.scheduler.get_jobs():
            job_info = self._job_status.get(job.id, {})
            status[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time,
                "last_run": job_info.get("last_run"),
                "last_status": job_info.get("last_status") or "pending",
                "last_error": job_info.get("last_error"),
                "run_count": job_info.get("run_count", 0),
            }
        return status

    def get_last_result(self) -> Optional[Any]:
        """RefreshResult from the most recent scheduled refresh."""
        return self._last_result

    def trigger_job(self, job_id: str) -> bool:
        """
        Manually trigger a job to run immediately.

        Args:
            job_id: ID of job to trigger

        Returns:
            True if job was triggered
        """
        job = self.scheduler.get_job(job_id)
        if job:
            if job.next_run_time is None:
                self.scheduler.resume_job(job_id)
            now = datetime.now(timezone.utc)
            self.scheduler.modify_job(job_id, next_run_time=now)
            logger.info(f"Triggered job: {job_id} at {now}")
            return True
        return False

    def pause_job(self, job_id: str) -> bool:
        """Pause a job."""
        job = self.scheduler.get_job(job_id)
        if job:
            self.scheduler.pause_job(job_id)
            logger.info(f"Paused job: {job_id}")
            return True
        return False

    def resume_job(self, job_id: str) -> bool:
        """Resume a paused job."""
        job = self.scheduler.get_job(job_id)
        if job:
            self.scheduler.resume_job(job_id)
            logger.info(f"Resumed job: {job_id}")
            return True
        return False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._is_running
