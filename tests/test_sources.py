"""Tests for the upstream feed clients."""
import asyncio
from datetime import datetime, timedelta

import aiohttp
import pytest

from edgefinder.data.cache import CacheManager
from edgefinder.data.sources import (
    AuthenticationError,
    BaseDataSource,
    CircuitBreaker,
    CircuitBreakerConfig,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    InjuryClient,
    OddsAPIClient,
    RateLimitError,
    RetryConfig,
    UpstreamUnavailableError,
    injuries_by_team,
    parse_injuries,
)

from factories import NBA, edge_slate, event_json

NO_WAIT = RetryConfig(max_attempts=3, initial_delay_seconds=0, jitter=False)


class ScriptedSource(BaseDataSource[str]):
    """Raises the scripted errors in order, then returns "ok"."""

    def __init__(self, errors, **kwargs):
        super().__init__("scripted", retry_config=NO_WAIT, **kwargs)
        self.errors = list(errors)
        self.attempts = 0

    async def _fetch_impl(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"

    async def health_check(self) -> DataSourceHealth:
        return self.get_health()


class TestRetry:

    async def test_transient_errors_are_retried(self):
        source = ScriptedSource([
            UpstreamUnavailableError("scripted"),
            UpstreamUnavailableError("scripted"),
        ])
        assert await source.fetch() == "ok"
        assert source.attempts == 3
        assert source.get_health().status == DataSourceStatus.HEALTHY

    async def test_gives_up_after_max_attempts(self):
        source = ScriptedSource([UpstreamUnavailableError("scripted")] * 3)
        with pytest.raises(UpstreamUnavailableError):
            await source.fetch()
        assert source.attempts == 3
        assert source.get_health().consecutive_failures == 1

    async def test_non_retryable_error_raises_immediately(self):
        source = ScriptedSource([AuthenticationError("scripted")])
        with pytest.raises(AuthenticationError):
            await source.fetch()
        assert source.attempts == 1

    async def test_unexpected_errors_propagate(self):
        source = ScriptedSource([KeyError("bug")])
        with pytest.raises(KeyError):
            await source.fetch()
        assert source.attempts == 1

    async def test_circuit_breaker_opens(self):
        source = ScriptedSource(
            [AuthenticationError("scripted")] * 2,
            circuit_breaker_config=CircuitBreakerConfig(failure_threshold=2),
        )
        for _ in range(2):
            with pytest.raises(AuthenticationError):
                await source.fetch()

        assert not source.is_available
        assert source.get_health().status == DataSourceStatus.UNHEALTHY
        with pytest.raises(UpstreamUnavailableError):
            await source.fetch()

        source.reset_circuit_breaker()
        assert source.is_available
        assert await source.fetch() == "ok"

    def test_breaker_half_open_recovery(self):
        t0 = datetime(2026, 1, 14, 18, 0)
        breaker = CircuitBreaker(CircuitBreakerConfig(
            failure_threshold=1, recovery_timeout_seconds=60, half_open_max_calls=2
        ))
        assert breaker.record_failure(now=t0)
        assert not breaker.allows_call(now=t0 + timedelta(seconds=59))
        assert breaker.allows_call(now=t0 + timedelta(seconds=60))
        assert breaker.state == CircuitBreaker.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitBreaker.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitBreaker.CLOSED

    def test_half_open_failure_reopens(self):
        t0 = datetime(2026, 1, 14, 18, 0)
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3, recovery_timeout_seconds=1))
        for _ in range(3):
            breaker.record_failure(now=t0)
        assert breaker.allows_call(now=t0 + timedelta(seconds=1))
        breaker.record_failure(now=t0 + timedelta(seconds=1))
        assert breaker.state == CircuitBreaker.OPEN

    async def test_fetch_budget_stops_slow_attempts(self):
        class SlowSource(ScriptedSource):
            async def _fetch_impl(self):
                self.attempts += 1
                await asyncio.sleep(1)
                return "late"

        source = SlowSource([], fetch_timeout_seconds=0.05)
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(UpstreamUnavailableError):
            await source.fetch()
        assert loop.time() - started < 0.5
        assert source.attempts == 1
        assert source.get_health().consecutive_failures == 1

    async def test_no_retry_past_the_budget(self):
        source = ScriptedSource(
            [UpstreamUnavailableError("scripted")] * 3, fetch_timeout_seconds=0.5
        )
        source.retry_config = RetryConfig(initial_delay_seconds=5, jitter=False)
        with pytest.raises(UpstreamUnavailableError):
            await source.fetch()
        assert source.attempts == 1

    def test_backoff_delay(self):
        source = ScriptedSource([])
        source.retry_config = RetryConfig(initial_delay_seconds=1, max_delay_seconds=3, jitter=False)
        assert source._calculate_delay(1) == 1
        assert source._calculate_delay(2) == 2
        assert source._calculate_delay(5) == 3


class TestOddsAPIClient:

    def test_disabled_without_key(self):
        client = OddsAPIClient(api_key="")
        assert not client.enabled
        assert client.get_health().status == DataSourceStatus.DISABLED

    async def test_disabled_client_refuses_to_fetch(self):
        client = OddsAPIClient(api_key="")
        health = await client.health_check()
        assert health.status == DataSourceStatus.DISABLED
        with pytest.raises(UpstreamUnavailableError):
            await client.get_odds("basketball_nba")

    async def test_serves_from_cache(self, slate_event):
        client = OddsAPIClient(api_key="test-key")
        cache = CacheManager.create_memory_cache()
        client.set_cache(cache)
        await cache.set(
            client._get_cache_key("basketball_nba", tuple(client.markets)),
            [slate_event],
            data_type="odds",
        )
        assert await client.get_odds("basketball_nba") == [slate_event]

    def test_credit_headers(self):
        client = OddsAPIClient(api_key="test-key")
        client._update_credits({"x-requests-remaining": "480", "x-requests-used": "20"})
        status = client.get_credit_status()
        assert status["remaining"] == 480
        assert status["used"] == 20


class StubResponse:
    def __init__(self, status=200, payload=None, headers=None, body="", delay=0.0):
        self.status = status
        self.payload = payload
        self.headers = headers or {}
        self.body = body
        self.delay = delay

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def json(self):
        return self.payload

    async def text(self):
        return self.body


class StubSession:
    """Hands out scripted responses (or raises scripted errors) per request."""

    closed = False

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None):
        self.calls.append((url, params))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def stub_client(*responses, **kwargs) -> OddsAPIClient:
    kwargs.setdefault("retry_config", NO_WAIT)
    return OddsAPIClient(api_key="test-key", session=StubSession(*responses), **kwargs)


class TestOddsAPIResponses:

    async def test_ok_payload_is_parsed(self):
        client = stub_client(StubResponse(
            payload=[event_json(edge_slate())],
            headers={"x-requests-remaining": "99", "x-requests-used": "401"},
        ))
        events = await client.get_odds(NBA, use_cache=False)
        assert [e.event_id for e in events] == ["evt1"]
        assert client.get_credit_status()["remaining"] == 99

        url, params = client._session.calls[0]
        assert url.endswith(f"/sports/{NBA}/odds")
        assert params["apiKey"] == "test-key"
        assert params["markets"] == "h2h,spreads,totals"
        assert params["oddsFormat"] == "american"

    async def test_non_list_payload_yields_no_events(self):
        client = stub_client(StubResponse(payload={"message": "unknown sport"}))
        assert await client.get_odds(NBA, use_cache=False) == []

    async def test_unauthorized(self):
        client = stub_client(StubResponse(status=401))
        with pytest.raises(AuthenticationError):
            await client.get_odds(NBA, use_cache=False)
        assert len(client._session.calls) == 1

    async def test_rate_limited(self):
        client = stub_client(StubResponse(status=429, headers={"Retry-After": "30"}))
        with pytest.raises(RateLimitError) as exc_info:
            await client.get_odds(NBA, use_cache=False)
        assert exc_info.value.retry_after_seconds == 30
        assert len(client._session.calls) == 1

    async def test_server_error_is_retried(self):
        client = stub_client(
            StubResponse(status=503),
            StubResponse(payload=[event_json(edge_slate())]),
        )
        events = await client.get_odds(NBA, use_cache=False)
        assert len(events) == 1
        assert len(client._session.calls) == 2

    async def test_persistent_server_error(self):
        client = stub_client(StubResponse(status=502))
        with pytest.raises(UpstreamUnavailableError):
            await client.get_odds(NBA, use_cache=False)
        assert len(client._session.calls) == NO_WAIT.max_attempts

    async def test_other_client_errors_are_not_retried(self):
        client = stub_client(StubResponse(status=422, body="bad markets"))
        with pytest.raises(DataSourceError) as exc_info:
            await client.get_odds(NBA, use_cache=False)
        assert not isinstance(exc_info.value, UpstreamUnavailableError)
        assert "bad markets" in str(exc_info.value)
        assert len(client._session.calls) == 1

    @pytest.mark.parametrize("error", [asyncio.TimeoutError(), aiohttp.ClientConnectionError("refused")])
    async def test_transport_errors_are_upstream_unavailable(self, error):
        client = stub_client(error, retry_config=RetryConfig(max_attempts=1))
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.get_odds(NBA, use_cache=False)
        assert exc_info.value.original_error is error

    async def test_slow_feed_is_abandoned_within_the_timeout(self):
        client = stub_client(StubResponse(payload=[], delay=2), timeout_seconds=0.2)
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(UpstreamUnavailableError):
            await client.get_odds(NBA, use_cache=False)
        assert loop.time() - started < 1
        assert len(client._session.calls) == 1


ESPN_PAYLOAD = {
    "injuries": [
        {
            "displayName": "Boston Celtics",
            "injuries": [
                {
                    "id": 1,
                    "status": "Out",
                    "athlete": {"displayName": "Jayson Tatum"},
                    "details": {"type": "Achilles"},
                },
                {"id": 2, "status": "Questionable", "athlete": {}},
            ],
        },
        {
            "displayName": "Los Angeles Lakers",
            "injuries": [
                {
                    "status": "Day-To-Day",
                    "athlete": {"displayName": "LeBron James"},
                    "shortComment": "Ankle soreness",
                },
            ],
        },
        {"injuries": [{"athlete": {"displayName": "Nobody"}}]},
    ]
}


class TestInjuries:

    def test_parse(self):
        injuries = parse_injuries(ESPN_PAYLOAD)
        assert [i.name for i in injuries] == ["Jayson Tatum", "LeBron James"]
        assert injuries[0].detail == "Achilles"
        assert injuries[0].injury_id == "1"
        assert injuries[1].detail == "Ankle soreness"
        assert injuries[1].team_short == "Lakers"

    def test_parse_garbage(self):
        assert parse_injuries(None) == []
        assert parse_injuries({"injuries": None}) == []
        assert parse_injuries({"injuries": 3}) == []

    def test_non_object_entries_are_skipped(self):
        payload = {"injuries": [None, "Celtics", *ESPN_PAYLOAD["injuries"]]}
        payload["injuries"][2] = dict(payload["injuries"][2])
        payload["injuries"][2]["injuries"] = [None, 5, *ESPN_PAYLOAD["injuries"][0]["injuries"]]
        assert [i.name for i in parse_injuries(payload)] == ["Jayson Tatum", "LeBron James"]

    def test_index_by_team(self):
        index = injuries_by_team(parse_injuries(ESPN_PAYLOAD))
        assert [i.name for i in index["celtics"]] == ["Jayson Tatum"]
        assert [i.name for i in index["los angeles lakers"]] == ["LeBron James"]

    async def test_unmapped_sport(self):
        client = InjuryClient()
        assert await client.get_injuries("soccer_epl") == []

    async def test_served_from_cache(self):
        client = InjuryClient()
        cache = CacheManager.create_memory_cache()
        client.set_cache(cache)
        injuries = parse_injuries(ESPN_PAYLOAD)
        await cache.set(client._get_cache_key("basketball/nba"), injuries)
        assert await client.get_injuries("basketball_nba") == injuries
