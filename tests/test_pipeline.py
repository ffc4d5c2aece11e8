"""Tests for the edge pipeline."""
from datetime import datetime

import pytest

from edgefinder.data.pipeline import EdgePipeline, PipelineUnavailableError
from edgefinder.data.sources import UpstreamUnavailableError
from edgefinder.data.models import MarketType

from factories import HOME, NBA, FakeOddsClient, bookmaker, make_event

NFL = "americanfootball_nfl"


@pytest.fixture
def pipeline(fake_odds_client):
    return EdgePipeline(fake_odds_client, sports=[NBA])


class TestRefresh:

    async def test_refresh_builds_everything(self, pipeline):
        result = await pipeline.refresh()

        assert [e.book_key for e in result.edges] == ["fanduel"]
        assert set(result.consensus["evt1"]) == {
            MarketType.MONEYLINE,
            MarketType.SPREAD,
            MarketType.TOTAL,
        }
        assert result.movements == []
        assert result.failed_sports == {}
        assert result.find_event("evt1").home_team == HOME
        assert result.find_event("missing") is None
        assert pipeline.last_result is result

    async def test_partial_failure_is_recorded(self, slate_event):
        client = FakeOddsClient({
            NBA: [slate_event],
            NFL: UpstreamUnavailableError("odds_api", "API error 503"),
        })
        pipeline = EdgePipeline(client, sports=[NBA, NFL])

        result = await pipeline.refresh()
        assert list(result.events_by_sport) == [NBA]
        assert result.failed_sports == {NFL: "API error 503"}
        assert len(result.edges) == 1
        assert result.summary()["failed_sports"] == {NFL: "API error 503"}

    async def test_total_failure_raises(self):
        client = FakeOddsClient({
            NBA: UpstreamUnavailableError("odds_api"),
            NFL: UpstreamUnavailableError("odds_api"),
        })
        pipeline = EdgePipeline(client, sports=[NBA, NFL])

        with pytest.raises(PipelineUnavailableError) as exc_info:
            await pipeline.refresh()
        assert set(exc_info.value.failures) == {NBA, NFL}
        assert pipeline.last_result is None

    async def test_sport_with_no_games_is_not_a_failure(self):
        pipeline = EdgePipeline(FakeOddsClient({NBA: []}), sports=[NBA])
        result = await pipeline.refresh()
        assert result.edges == []
        assert result.failed_sports == {}

    async def test_movements_across_refreshes(self):
        first = make_event([bookmaker("draftkings", h2h=(-150, 130))])
        second = make_event([bookmaker("draftkings", h2h=(-120, 100))])
        client = FakeOddsClient({NBA: [first]})
        pipeline = EdgePipeline(client, sports=[NBA])

        await pipeline.refresh()
        client.responses[NBA] = [second]
        result = await pipeline.refresh()

        assert {m.outcome for m in result.movements} == {HOME, "Los Angeles Lakers"}
        assert pipeline.edge_score_for(second) >= 50


class TestCachedAccess:

    async def test_get_edges_uses_cache(self, pipeline, fake_odds_client):
        first = await pipeline.get_edges()
        second = await pipeline.get_edges()
        assert first == second
        assert fake_odds_client.calls == [NBA]

    async def test_get_edges_bypassing_cache(self, pipeline, fake_odds_client):
        await pipeline.get_edges()
        await pipeline.get_edges(use_cache=False)
        assert fake_odds_client.calls == [NBA, NBA]

    async def test_get_result_refreshes_once(self, pipeline, fake_odds_client):
        await pipeline.get_result()
        await pipeline.get_result()
        assert fake_odds_client.calls == [NBA]

    async def test_reset(self, pipeline, fake_odds_client):
        await pipeline.refresh()
        await pipeline.reset()
        assert pipeline.last_result is None
        assert pipeline.movement_detector.tracked_lines == 0

    async def test_injuries_without_client(self, pipeline):
        assert await pipeline.get_injuries(NBA) == []

    async def test_slate_for_one_sport(self, pipeline, fake_odds_client):
        events, consensus = await pipeline.get_slate(NBA)
        assert [e.event_id for e in events] == ["evt1"]
        assert consensus["evt1"][MarketType.MONEYLINE].hold_pct == 3.5
        assert pipeline.last_result is None
        assert fake_odds_client.calls == [NBA]

    async def test_slate_failure(self):
        client = FakeOddsClient({NFL: UpstreamUnavailableError("odds_api", "timed out")})
        pipeline = EdgePipeline(client, sports=[NBA])
        with pytest.raises(PipelineUnavailableError) as exc_info:
            await pipeline.get_slate(NFL)
        assert exc_info.value.failures == {NFL: "timed out"}


class TestHealth:

    async def test_missing_injury_client_degrades(self, pipeline):
        health = await pipeline.health_check()
        assert health.status == "degraded"
        assert health.sources["odds_api"].status.value == "healthy"
        assert health.sources["espn"].status.value == "disabled"
        assert isinstance(health.timestamp, datetime)

    async def test_close(self, pipeline, fake_odds_client):
        await pipeline.close()
        assert fake_odds_client.closed
