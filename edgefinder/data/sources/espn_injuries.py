"""
ESPN injury report client.

ESPN's site API is free, needs no authentication and serves the same
injury reports its website uses. It is an unofficial API and may change
without notice, so every field is treated as optional.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import aiohttp

from edgefinder.config.constants import SPORT_ESPN_MAP

from .base import (
    CachedDataSource,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RetryConfig,
    UpstreamUnavailableError,
)


@dataclass
class Injury:
    """One player on a team's injury report."""

    name: str
    team: str
    team_short: Optional[str]
    status: Optional[str]
    detail: Optional[str]
    injury_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.injury_id,
            "name": self.name,
            "team": self.team,
            "team_short": self.team_short,
            "status": self.status,
            "injury": self.detail,
        }


def parse_injuries(payload: Any) -> list[Injury]:
    """Flatten ESPN's per-team injury lists, skipping entries without a player."""
    if not isinstance(payload, dict):
        return []

    teams = payload.get("injuries")
    if not isinstance(teams, list):
        return []

    injuries = []
    for team in teams:
        if not isinstance(team, dict):
            continue
        team_name = team.get("displayName")
        if not isinstance(team_name, str) or not team_name:
            continue
        team_short = team_name.split(" ")[-1]

        for raw in team.get("injuries") or []:
            if not isinstance(raw, dict):
                continue
            athlete = raw.get("athlete")
            name = athlete.get("displayName") if isinstance(athlete, dict) else None
            if not name:
                continue
            details = raw.get("details")
            if not isinstance(details, dict):
                details = {}
            injuries.append(
                Injury(
                    name=name,
                    team=team_name,
                    team_short=team_short,
                    status=raw.get("status"),
                    detail=details.get("type") or raw.get("shortComment"),
                    injury_id=str(raw["id"]) if raw.get("id") is not None else None,
                )
            )
    return injuries


def injuries_by_team(injuries: list[Injury]) -> dict[str, list[Injury]]:
    """Index injuries by full and short team name, case-insensitively."""
    index: dict[str, list[Injury]] = {}
    for injury in injuries:
        keys = {injury.team.lower()}
        if injury.team_short:
            keys.add(injury.team_short.lower())
        for key in keys:
            index.setdefault(key, []).append(injury)
    return index


class InjuryClient(CachedDataSource[list]):
    """
    Client for ESPN's injury reports.

    No API key required. Sports without an ESPN mapping return an empty
    list without a request.
    """

    SITE_API = "https://site.api.espn.com/apis/site/v2/sports"

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            source_name="espn",
            cache_data_type="injuries",
            enabled=enabled,
            retry_config=retry_config,
            fetch_timeout_seconds=timeout_seconds,
        )
        self.timeout_seconds = timeout_seconds
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"User-Agent": "Mozilla/5.0 (compatible; EdgeFinder/1.0)"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _fetch_impl(self, espn_path: str) -> list[Injury]:
        url = f"{self.SITE_API}/{espn_path}/injuries"
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise UpstreamUnavailableError(
                        self.source_name, f"ESPN error: {response.status}"
                    )
                data = await response.json()
        except aiohttp.ClientError as e:
            raise UpstreamUnavailableError(
                self.source_name, f"Connection error: {e}", original_error=e
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError(
                self.source_name, "Request timed out", original_error=e
            )

        injuries = parse_injuries(data)
        self.logger.info(f"Loaded {len(injuries)} injuries for {espn_path}")
        return injuries

    async def get_injuries(self, sport: str, use_cache: bool = True) -> list[Injury]:
        """
        Get the current injury report for a sport.

        Args:
            sport: Feed sport key (e.g. basketball_nba)
            use_cache: Serve from cache when fresh

        Returns:
            Injuries across every team, empty for unmapped sports
        """
        espn_path = SPORT_ESPN_MAP.get(sport)
        if espn_path is None:
            self.logger.debug(f"No ESPN injury feed for {sport}")
            return []
        return await self.fetch_cached(espn_path, use_cache=use_cache)

    async def health_check(self) -> DataSourceHealth:
        """Check if ESPN API is accessible."""
        if not self.enabled:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.DISABLED,
            )
        try:
            await self._fetch_impl(SPORT_ESPN_MAP["basketball_nba"])
        except DataSourceError as e:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.UNHEALTHY,
                error_message=str(e),
            )
        return DataSourceHealth(
            source_name=self.source_name,
            status=DataSourceStatus.HEALTHY,
            last_success=datetime.now(),
        )
