"""
Edge pipeline orchestration layer.

One refresh pulls odds for every tracked sport concurrently, then runs
consensus pricing, edge detection and line movement tracking over the
combined slate.

A sport whose fetch fails is logged and skipped; the other sports are
still processed. Only when every sport fails does the refresh raise, so
callers can tell "no edges right now" from "the feed is down".
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Protocol

from loguru import logger

from edgefinder.betting.edge_detector import Edge, EdgeDetector
from edgefinder.betting.edge_scorer import edge_score
from edgefinder.betting.fair_price import ConsensusPrice, consensus_for_slate
from edgefinder.config.constants import TRACKED_SPORTS

from .cache.cache_manager import CacheManager
from .line_history import LineMovementDetector, MovementEvent
from .models import Event, MarketType
from .sources.base import DataSourceError, DataSourceHealth, DataSourceStatus
from .sources.espn_injuries import Injury, InjuryClient
from .sources.odds_api import OddsAPIClientFactory


class OddsSource(Protocol):
    """Anything that can return parsed events for a sport."""

    async def get_odds(self, sport: str) -> list[Event]:
        ...


class PipelineUnavailableError(Exception):
    """Every sport failed to refresh."""

    def __init__(self, failures: dict[str, str]):
        sports = ", ".join(sorted(failures)) or "none"
        super().__init__(f"Odds refresh failed for every sport ({sports})")
        self.failures = failures


@dataclass
class PipelineHealth:
    """Overall health status of the pipeline's sources."""

    status: str  # healthy, degraded, unhealthy
    sources: dict[str, DataSourceHealth]
    timestamp: datetime = field(default_factory=datetime.now)
    message: Optional[str] = None


@dataclass
class RefreshResult:
    """Everything produced by one refresh."""

    edges: list[Edge] = field(default_factory=list)
    consensus: dict[str, dict[MarketType, ConsensusPrice]] = field(default_factory=dict)
    movements: list[MovementEvent] = field(default_factory=list)
    events_by_sport: dict[str, list[Event]] = field(default_factory=dict)
    failed_sports: dict[str, str] = field(default_factory=dict)
    refreshed_at: datetime = field(default_factory=datetime.now)

    @property
    def events(self) -> list[Event]:
        return [e for events in self.events_by_sport.values() for e in events]

    def find_event(self, event_id: str) -> Optional[Event]:
        for event in self.events:
            if event.event_id == event_id:
                return event
        return None

    def summary(self) -> dict:
        return {
            "refreshed_at": self.refreshed_at.isoformat(),
            "sports": sorted(self.events_by_sport),
            "failed_sports": self.failed_sports,
            "events": len(self.events),
            "edges": len(self.edges),
            "movements": len(self.movements),
        }


class EdgePipeline:
    """
    Refreshes odds and derives edges, consensus and movements.

    Refreshes are single-flight: a call that arrives while another is
    running waits for it and then runs its own.

    Example:
        >>> pipeline = EdgePipeline.from_settings(settings)
        >>> result = await pipeline.refresh()
        >>> for edge in result.edges[:5]:
        ...     print(edge.description, edge.ev_display)
    """

    EDGES_CACHE_KEY = "edges:all"

    def __init__(
        self,
        odds_client: OddsSource,
        injury_client: Optional[InjuryClient] = None,
        cache: Optional[CacheManager] = None,
        detector: Optional[EdgeDetector] = None,
        movement_detector: Optional[LineMovementDetector] = None,
        sports: Optional[Iterable[str]] = None,
    ):
        self.odds_client = odds_client
        self.injury_client = injury_client
        self.cache = cache or CacheManager()
        self.detector = detector or EdgeDetector()
        self.movement_detector = movement_detector or LineMovementDetector()
        self.sports = list(sports or TRACKED_SPORTS)

        self.last_result: Optional[RefreshResult] = None
        self._refresh_lock = asyncio.Lock()
        self.logger = logger.bind(component="pipeline")

        if self.injury_client is not None:
            self.injury_client.set_cache(self.cache)
        if hasattr(self.odds_client, "set_cache"):
            self.odds_client.set_cache(self.cache)

    @classmethod
    def from_settings(cls, settings) -> "EdgePipeline":
        """
        Create an EdgePipeline from application settings.

        Args:
            settings: Application settings object

        Returns:
            Configured EdgePipeline
        """
        return cls(
            odds_client=OddsAPIClientFactory.create_from_settings(settings),
            injury_client=InjuryClient(
                timeout_seconds=settings.odds_api.request_timeout_seconds,
            ),
            cache=CacheManager.create_from_settings(settings),
            detector=EdgeDetector.from_settings(settings),
            movement_detector=LineMovementDetector.from_settings(settings),
            sports=settings.odds_api.tracked_sports,
        )

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    async def _fetch_all(self, sports: list[str]) -> tuple[dict[str, list[Event]], dict[str, str]]:
        results = await asyncio.gather(
            *[self.odds_client.get_odds(sport) for sport in sports],
            return_exceptions=True,
        )

        events_by_sport: dict[str, list[Event]] = {}
        failures: dict[str, str] = {}
        for sport, result in zip(sports, results):
            if isinstance(result, Exception):
                self.logger.warning(f"Odds refresh failed for {sport}: {result}")
                failures[sport] = str(result) or type(result).__name__
            elif isinstance(result, BaseException):
                raise result
            else:
                events_by_sport[sport] = result

        return events_by_sport, failures

    async def refresh(self, sports: Optional[Iterable[str]] = None) -> RefreshResult:
        """
        Pull fresh odds and rebuild edges, consensus and movements.

        Args:
            sports: Sport keys to refresh (defaults to the tracked sports)

        Returns:
            RefreshResult for this pass

        Raises:
            PipelineUnavailableError: If every requested sport failed
        """
        sports = list(sports or self.sports)

        async with self._refresh_lock:
            start = datetime.now()
            events_by_sport, failures = await self._fetch_all(sports)

            if sports and not events_by_sport:
                self.logger.error(f"All {len(sports)} sports failed to refresh")
                raise PipelineUnavailableError(failures)

            detection = self.detector.detect_edges(events_by_sport)
            all_events = [e for events in events_by_sport.values() for e in events]
            consensus = consensus_for_slate(all_events)
            movements = self.movement_detector.update(all_events, now=start)

            result = RefreshResult(
                edges=detection.edges,
                consensus=consensus,
                movements=movements,
                events_by_sport=events_by_sport,
                failed_sports=failures,
                refreshed_at=start,
            )
            self.last_result = result
            await self.cache.set(self.EDGES_CACHE_KEY, result.edges, data_type="edges")

        elapsed = (datetime.now() - start).total_seconds()
        self.logger.info(
            f"Refresh complete in {elapsed:.2f}s: {len(result.edges)} edges, "
            f"{len(movements)} movements, {len(failures)} failed sports"
        )
        return result

    async def get_edges(self, use_cache: bool = True) -> list[Edge]:
        """
        Current EV-sorted edges, refreshing when the cached list has expired.

        Raises:
            PipelineUnavailableError: If a refresh was needed and every sport failed
        """
        if not use_cache:
            return (await self.refresh()).edges

        async def _load() -> list[Edge]:
            return (await self.refresh()).edges

        return await self.cache.get_or_set(self.EDGES_CACHE_KEY, _load, data_type="edges")

    async def get_result(self) -> RefreshResult:
        """Latest refresh result, refreshing once if there is none yet."""
        if self.last_result is None:
            return await self.refresh()
        return self.last_result

    async def get_slate(self, sport: str) -> tuple[list[Event], dict[str, dict[MarketType, ConsensusPrice]]]:
        """
        Events and consensus for one sport, read through the odds cache.

        Works for any sport key, tracked or not; it does not touch the
        refresh result or line history.

        Raises:
            PipelineUnavailableError: If the odds fetch for the sport failed
        """
        try:
            events = await self.odds_client.get_odds(sport)
        except DataSourceError as e:
            self.logger.warning(f"Slate fetch failed for {sport}: {e}")
            raise PipelineUnavailableError({sport: str(e)}) from e
        return events, consensus_for_slate(events)

    def edge_score_for(self, event: Event) -> int:
        return edge_score(event, self.movement_detector.event_history_depth(event.event_id))

    async def get_injuries(self, sport: str) -> list[Injury]:
        """Injury report for a sport, empty when no injury client is configured."""
        if self.injury_client is None:
            return []
        return await self.injury_client.get_injuries(sport)

    async def health_check(self) -> PipelineHealth:
        """Check every configured source."""
        sources = {"odds_api": self.odds_client, "espn": self.injury_client}

        health_checks: dict[str, DataSourceHealth] = {}
        for name, source in sources.items():
            if source is None or not hasattr(source, "health_check"):
                health_checks[name] = DataSourceHealth(
                    source_name=name,
                    status=DataSourceStatus.DISABLED,
                    error_message="Not configured",
                )
                continue
            health_checks[name] = await source.health_check()

        odds_status = health_checks["odds_api"].status
        if odds_status in (DataSourceStatus.UNHEALTHY, DataSourceStatus.DISABLED):
            status = "unhealthy"
        elif all(h.status == DataSourceStatus.HEALTHY for h in health_checks.values()):
            status = "healthy"
        else:
            status = "degraded"

        return PipelineHealth(status=status, sources=health_checks)

    async def reset(self) -> None:
        """Drop cached data and line history."""
        await self.cache.reset()
        self.movement_detector.reset()
        self.last_result = None

    async def close(self) -> None:
        """Close all data source connections."""
        for source in (self.odds_client, self.injury_client):
            if source is not None and hasattr(source, "close"):
                await source.close()
        await self.cache.close()

        self.logger.info("Edge pipeline closed")
