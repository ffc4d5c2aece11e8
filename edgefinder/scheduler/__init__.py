"""
Job scheduling module.

Provides APScheduler-based background jobs for:
- Periodic odds refresh and edge detection
- Health monitoring

Example:
    >>> from edgefinder.scheduler import SchedulerOrchestrator
    >>>
    >>> scheduler = SchedulerOrchestrator(settings, pipeline)
    >>> scheduler.start()
    >>>
    >>> # Manual trigger
    >>> scheduler.trigger_job("refresh_odds")
    >>>
    >>> scheduler.stop()
"""

from .orchestrator import SchedulerOrchestrator
from .jobs import health_check, refresh_odds

__all__ = [
    "SchedulerOrchestrator",
    "refresh_odds",
    "health_check",
]
