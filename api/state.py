"""
Application state management for FastAPI.

Holds shared state across the application:
- Settings
- Edge pipeline (odds, consensus, edges, movements)
- Kelly calculator
- Scheduler orchestrator

Components can be passed in directly, which is how tests run the API
against an in-memory odds source without touching the network.
"""

import logging
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


class AppState:
    """
    Centralized application state.

    Initializes and manages lifecycle of all major components.
    """

    def __init__(
        self,
        settings: Any = None,
        pipeline: Any = None,
        kelly_calculator: Any = None,
        scheduler: Any = None,
        start_scheduler: bool = True,
    ):
        self.settings = settings
        self.pipeline = pipeline
        self.kelly_calculator = kelly_calculator
        self.scheduler = scheduler
        self.start_scheduler = start_scheduler
        self._initialized = False
        self._init_error: Optional[str] = None
        self._started_at: Optional[datetime] = None

    async def initialize(self) -> None:
        """Build any component that was not injected, then start the scheduler."""
        if self._initialized:
            return

        from edgefinder.betting.kelly_calculator import KellyCalculator
        from edgefinder.config.settings import get_settings
        from edgefinder.data.pipeline import EdgePipeline
        from edgefinder.scheduler.orchestrator import SchedulerOrchestrator

        try:
            if self.settings is None:
                self.settings = get_settings()
                logger.info("Settings loaded")

            if self.pipeline is None:
                self.pipeline = EdgePipeline.from_settings(self.settings)
                logger.info(f"Edge pipeline initialized for {', '.join(self.pipeline.sports)}")

            if self.kelly_calculator is None:
                self.kelly_calculator = KellyCalculator.from_settings(self.settings)

            if self.scheduler is None and self.start_scheduler:
                self.scheduler = SchedulerOrchestrator(
                    settings=self.settings,
                    pipeline=self.pipeline,
                )
            if self.scheduler is not None and self.start_scheduler:
                self.scheduler.start()
                logger.info("Scheduler started")

        except Exception as e:
            self._init_error = str(e)
            logger.error(f"Failed to initialize application state: {e}")
            raise

        self._initialized = True
        self._started_at = datetime.now()

    async def shutdown(self) -> None:
        """Stop the scheduler and close upstream connections."""
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.pipeline is not None:
            await self.pipeline.close()
        self._initialized = False
        logger.info("Application state shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def last_result(self) -> Any:
        """Most recent refresh, or None before the first one completes."""
        if self.pipeline is None:
            return None
        return self.pipeline.last_result

    async def get_result(self) -> Any:
        """Latest refresh result, refreshing once if there is none yet."""
        return await self.pipeline.get_result()

    def get_health_status(self) -> dict:
        """Get health status of all components."""
        result = self.last_result
        status = {
            "initialized": self._initialized,
            "settings": self.settings is not None,
            "pipeline": self.pipeline is not None,
            "scheduler": self.scheduler is not None,
            "scheduler_running": self.scheduler.is_running if self.scheduler else False,
            "refreshing": self.pipeline.is_refreshing if self.pipeline else False,
            "edges_in_memory": len(result.edges) if result else 0,
            "last_data_refresh": result.refreshed_at.isoformat() if result else None,
            "failed_sports": result.failed_sports if result else {},
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }
        if self._init_error:
            status["init_error"] = self._init_error
        return status
