"""
The Odds API client for real-time sports betting odds.

Fetches pre-game moneyline, spread and total odds for any sport key and
parses them into Event models. Features async HTTP with a per-request
timeout, rate limiting, credit tracking and caching.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import aiohttp

from edgefinder.config.constants import DEFAULT_MARKETS
from edgefinder.data.models import Event, parse_events

from .base import (
    AuthenticationError,
    CachedDataSource,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    RetryConfig,
    UpstreamUnavailableError,
)


class OddsAPIClient(CachedDataSource[list]):
    """
    Async client for The Odds API (v4).

    Handles:
    - Async HTTP requests with connection pooling
    - Rate limiting to stay within API quotas
    - Credit tracking via response headers
    - Caching through an injected CacheManager

    Credit costs:
    - Odds request: 1 credit per region per market
    """

    BASE_URL = "https://api.the-odds-api.com/v4"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        regions: list[str] | None = None,
        markets: list[str] | None = None,
        timeout_seconds: float = 10.0,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            source_name="odds_api",
            cache_data_type="odds",
            enabled=enabled,
            retry_config=retry_config,
            fetch_timeout_seconds=timeout_seconds,
        )

        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.regions = regions or ["us"]
        self.markets = markets or list(DEFAULT_MARKETS)
        self.timeout_seconds = timeout_seconds

        # API credit tracking
        self._remaining_credits: int | None = None
        self._used_credits: int | None = None
        self._last_credit_check: datetime | None = None

        # Rate limiting
        self._request_semaphore = asyncio.Semaphore(5)  # Max concurrent requests
        self._last_request_time: datetime | None = None
        self._min_request_interval = 0.2  # 200ms between requests

        self._session = session

        if not api_key:
            self.logger.warning("No API key provided - odds API will be disabled")
            self.enabled = False
            self._health.status = DataSourceStatus.DISABLED

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def health_check(self) -> DataSourceHealth:
        """Check if The Odds API is accessible."""
        if not self.enabled:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.DISABLED,
                error_message="API key not configured",
            )

        try:
            # The sports list does not cost credits
            await self._make_request("sports")
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

    def _update_credits(self, headers) -> None:
        """Update credit tracking from response headers."""
        try:
            if "x-requests-remaining" in headers:
                self._remaining_credits = int(float(headers["x-requests-remaining"]))
            if "x-requests-used" in headers:
                self._used_credits = int(float(headers["x-requests-used"]))
        except (TypeError, ValueError):
            self.logger.debug("Unparseable credit headers")
        self._last_credit_check = datetime.now()

        self.logger.debug(
            f"API credits - Remaining: {self._remaining_credits}, "
            f"Used: {self._used_credits}"
        )

        # Warn if running low
        if self._remaining_credits is not None and self._remaining_credits < 100:
            self.logger.warning(
                f"Low API credits! Only {self._remaining_credits} remaining"
            )

    async def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self._last_request_time:
            elapsed = (datetime.now() - self._last_request_time).total_seconds()
            if elapsed < self._min_request_interval:
                await asyncio.sleep(self._min_request_interval - elapsed)
        self._last_request_time = datetime.now()

    async def _make_request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an authenticated request to The Odds API.

        Args:
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            JSON response data

        Raises:
            AuthenticationError: On 401
            RateLimitError: On 429
            UpstreamUnavailableError: On timeouts, connection errors and 5xx
            DataSourceError: On other non-200 responses
        """
        if not self.enabled:
            raise DataSourceError(
                "Odds API not enabled", self.source_name, retry_allowed=False
            )

        url = f"{self.base_url}/{endpoint}"
        request_params = {"apiKey": self.api_key}
        if params:
            request_params.update(params)

        async with self._request_semaphore:
            await self._rate_limit()

            session = await self._get_session()

            try:
                async with session.get(url, params=request_params) as response:
                    self._update_credits(response.headers)

                    if response.status == 200:
                        return await response.json()

                    elif response.status == 401:
                        raise AuthenticationError(self.source_name, "Invalid API key")

                    elif response.status == 429:
                        retry_after = response.headers.get("Retry-After", "60")
                        raise RateLimitError(
                            self.source_name,
                            retry_after_seconds=int(retry_after) if retry_after.isdigit() else None,
                        )

                    elif response.status >= 500:
                        raise UpstreamUnavailableError(
                            self.source_name, f"API error {response.status}"
                        )

                    else:
                        error_text = await response.text()
                        raise DataSourceError(
                            f"API error {response.status}: {error_text}",
                            self.source_name,
                            retry_allowed=False,
                        )

            except asyncio.TimeoutError as e:
                raise UpstreamUnavailableError(
                    self.source_name,
                    f"Request timed out after {self.timeout_seconds}s",
                    original_error=e,
                )
            except aiohttp.ClientError as e:
                raise UpstreamUnavailableError(
                    self.source_name, f"Connection error: {e}", original_error=e
                )

    async def _fetch_impl(self, sport: str, markets: Optional[tuple] = None) -> list[Event]:
        markets = list(markets or self.markets)
        params = {
            "regions": ",".join(self.regions),
            "markets": ",".join(markets),
            "oddsFormat": "american",
        }

        self.logger.info(f"Fetching {sport} odds for markets: {markets}")
        data = await self._make_request(f"sports/{sport}/odds", params)

        events = parse_events(data, sport=sport)
        self.logger.info(f"Received odds for {len(events)} {sport} events")
        return events

    async def get_odds(
        self,
        sport: str,
        markets: list[str] | None = None,
        use_cache: bool = True,
    ) -> list[Event]:
        """
        Get current odds for every upcoming event of a sport.

        Args:
            sport: Feed sport key (e.g. basketball_nba)
            markets: Feed market keys (h2h, spreads, totals)
            use_cache: Serve from cache when fresh

        Returns:
            Parsed events; malformed quotes are already dropped

        Example:
            >>> client = OddsAPIClient(api_key="...")
            >>> events = await client.get_odds("basketball_nba")
            >>> for event in events:
            ...     print(event.game_name)
        """
        market_key = tuple(markets or self.markets)
        return await self.fetch_cached(sport, markets=market_key, use_cache=use_cache)

    def _get_cache_key(self, sport: str, markets: Optional[tuple] = None) -> str:
        return f"{self.cache_prefix}:{sport}:{','.join(markets or self.markets)}"

    def get_credit_status(self) -> dict:
        """
        Get current API credit status.

        Returns:
            Dict with remaining and used credits
        """
        return {
            "remaining": self._remaining_credits,
            "used": self._used_credits,
            "last_check": self._last_credit_check,
        }


class OddsAPIClientFactory:
    """Factory for creating OddsAPIClient instances."""

    @staticmethod
    def create_from_settings(settings) -> OddsAPIClient:
        """
        Create an OddsAPIClient from application settings.

        Args:
            settings: Application settings object

        Returns:
            Configured OddsAPIClient
        """
        odds = settings.odds_api
        return OddsAPIClient(
            api_key=odds.api_key or "",
            base_url=odds.base_url,
            regions=odds.regions,
            markets=odds.markets,
            timeout_seconds=odds.request_timeout_seconds,
            enabled=bool(odds.api_key),
        )
