"""
Tests for the FastAPI endpoints.

The app runs against an in-memory odds source with the scheduler
disabled, so no request leaves the process.
"""
import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from api.state import AppState
from edgefinder.config.settings import Settings
from edgefinder.data.pipeline import EdgePipeline
from edgefinder.data.sources import Injury, UpstreamUnavailableError

from factories import NBA, FakeOddsClient, bookmaker, edge_slate, make_event


class FakeInjuryClient:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def set_cache(self, cache) -> None:
        pass

    async def get_injuries(self, sport):
        self.calls.append(sport)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def build_client(odds_client, injury_client=None) -> TestClient:
    state = AppState(
        settings=Settings(),
        pipeline=EdgePipeline(odds_client, injury_client=injury_client, sports=[NBA]),
        start_scheduler=False,
    )
    return TestClient(create_app(state))


@pytest.fixture
def client(fake_odds_client):
    with build_client(fake_odds_client) as test_client:
        yield test_client


@pytest.fixture
def down_client():
    odds_client = FakeOddsClient({NBA: UpstreamUnavailableError("odds_api", "API error 503")})
    with build_client(odds_client) as test_client:
        yield test_client


class TestHealth:

    def test_root(self, client):
        assert client.get("/").json()["name"] == "EdgeFinder API"

    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["components"]["scheduler"] is False

    def test_sources(self, client):
        data = client.get("/api/health/sources").json()
        assert data["sources"]["odds_api"]["status"] == "healthy"

    def test_live(self, client):
        assert client.get("/api/health/live").json()["alive"] is True


class TestEdges:

    def test_pro_sees_ev(self, client):
        data = client.get("/api/edges", params={"tier": "pro"}).json()
        assert data["count"] == 1
        edge = data["edges"][0]
        assert edge["ev"] == 13.9
        assert edge["confidence"] == "HIGH"
        assert edge["book_key"] == "fanduel"
        assert data["last_refresh"] is not None

    def test_free_is_locked(self, client):
        data = client.get("/api/edges").json()
        assert data["tier"] == "free"
        edge = data["edges"][0]
        assert "ev" not in edge
        assert edge["locked"] is True

    def test_min_ev_filter(self, client):
        data = client.get("/api/edges", params={"tier": "pro", "min_ev": 20}).json()
        assert data["count"] == 0

    def test_sport_filter(self, client):
        assert client.get("/api/edges", params={"sport": "nba"}).json()["count"] == 1
        assert client.get("/api/edges", params={"sport": NBA}).json()["count"] == 1
        assert client.get("/api/edges", params={"sport": "nfl"}).json()["count"] == 0

    def test_bad_tier(self, client):
        assert client.get("/api/edges", params={"tier": "gold"}).status_code == 422

    def test_feed_down(self, down_client):
        response = down_client.get("/api/edges")
        assert response.status_code == 503
        assert response.json()["failed_sports"] == {NBA: "API error 503"}


class TestConsensus:

    def test_pro_overlay(self, client):
        data = client.get("/api/odds/evt1/consensus", params={"tier": "pro"}).json()
        assert data["consensus"]["moneyline"]["hold_pct"] == 3.5
        assert data["edge_score"] == 60
        assert data["edge_badge"] == "MID"

    def test_free_view(self, client):
        data = client.get("/api/odds/evt1/consensus").json()
        assert "consensus" not in data
        assert {b["key"] for b in data["books"]} == {"draftkings", "betmgm", "fanduel"}

    def test_unknown_event(self, client):
        assert client.get("/api/odds/nope/consensus").status_code == 404


class TestOddsSlate:

    @pytest.fixture
    def slate_client(self):
        books = [*edge_slate(), bookmaker("pinnacle", h2h=(-140, 120))]
        odds_client = FakeOddsClient({NBA: [make_event(books)], "icehockey_nhl": []})
        with build_client(odds_client) as test_client:
            yield test_client

    def test_free_slate(self, slate_client):
        data = slate_client.get("/api/odds", params={"sport": NBA}).json()
        assert data["count"] == 1
        event = data["events"][0]
        assert event["event_id"] == "evt1"
        assert [b["key"] for b in event["books"]] == ["draftkings", "betmgm", "fanduel"]
        assert "consensus" not in event
        assert all(line["book"] != "Pinnacle" for line in event["best_lines"])

    def test_pro_slate(self, slate_client):
        data = slate_client.get("/api/odds", params={"sport": NBA, "tier": "pro"}).json()
        event = data["events"][0]
        assert "pinnacle" in [b["key"] for b in event["books"]]
        assert "moneyline" in event["consensus"]
        assert "edge_score" in event

    def test_untracked_sport_is_fetched(self, slate_client):
        data = slate_client.get("/api/odds", params={"sport": "icehockey_nhl"}).json()
        assert data == {"sport": "icehockey_nhl", "tier": "free", "count": 0, "events": []}

    def test_feed_down(self, down_client):
        response = down_client.get("/api/odds", params={"sport": NBA})
        assert response.status_code == 503
        assert response.json()["failed_sports"] == {NBA: "API error 503"}


class TestInjuries:

    def test_report(self, fake_odds_client):
        injury = Injury(
            name="Jayson Tatum",
            team="Boston Celtics",
            team_short="Celtics",
            status="Out",
            detail="Achilles",
            injury_id="1",
        )
        injury_client = FakeInjuryClient([injury])
        with build_client(fake_odds_client, injury_client) as test_client:
            data = test_client.get("/api/injuries", params={"sport": NBA}).json()
        assert data["count"] == 1
        assert data["injuries"][0]["name"] == "Jayson Tatum"
        assert data["injuries"][0]["injury"] == "Achilles"
        assert injury_client.calls == [NBA]

    def test_no_injury_feed(self, client):
        assert client.get("/api/injuries").json()["injuries"] == []

    def test_injury_feed_down(self, fake_odds_client):
        injury_client = FakeInjuryClient(UpstreamUnavailableError("espn", "ESPN error 500"))
        with build_client(fake_odds_client, injury_client) as test_client:
            assert test_client.get("/api/injuries").status_code == 503


class TestMovements:

    def test_free_locked(self, client):
        client.post("/api/refresh")
        data = client.get("/api/movements").json()
        assert data["locked"] is True
        assert data["movements"] == []
        assert data["tracked_lines"] > 0

    def test_pro(self, client):
        data = client.get("/api/movements", params={"tier": "pro"}).json()
        assert data["locked"] is False
        assert data["count"] == 0


class TestKelly:
    payload = {"price": -110, "win_probability": 0.55, "bankroll": 1000}

    def test_free_forbidden(self, client):
        assert client.post("/api/kelly", json=self.payload).status_code == 403

    def test_pro_sizing(self, client):
        response = client.post("/api/kelly", params={"tier": "pro"}, json=self.payload)
        assert response.status_code == 200
        data = response.json()
        assert data["full_kelly"] == pytest.approx(0.055)
        assert data["has_edge"] is True
        assert data["full_stake"] == 55.0
        assert data["recommendation"]["recommended_stake"] > 0

    def test_no_edge(self, client):
        response = client.post(
            "/api/kelly",
            params={"tier": "pro"},
            json={"price": -110, "win_probability": 0.5},
        )
        data = response.json()
        assert data["has_edge"] is False
        assert data["full_kelly"] == 0
        assert "recommendation" not in data

    def test_invalid_price(self, client):
        response = client.post(
            "/api/kelly",
            params={"tier": "pro"},
            json={"price": 50, "win_probability": 0.5},
        )
        assert response.status_code == 422

    def test_invalid_probability(self, client):
        response = client.post(
            "/api/kelly",
            params={"tier": "pro"},
            json={"price": -110, "win_probability": 1.5},
        )
        assert response.status_code == 422


class TestRefresh:

    def test_refresh(self, client, fake_odds_client):
        data = client.post("/api/refresh").json()
        assert data["sports"] == [NBA]
        assert data["edges"] == 1
        assert fake_odds_client.calls == [NBA]
        assert data["results"]["tier"] == "free"
        assert data["results"]["edges"][0]["locked"] is True
        assert data["results"]["movements"] == []

    def test_refresh_pro_results(self, client):
        data = client.post("/api/refresh", params={"tier": "pro"}).json()
        assert data["results"]["edges"][0]["ev"] == 13.9

    def test_refresh_feed_down(self, down_client):
        assert down_client.post("/api/refresh").status_code == 503

    def test_jobs_without_scheduler(self, client):
        assert client.get("/api/jobs/status").json() == {"scheduler_running": False, "jobs": []}
        assert client.post("/api/jobs/refresh_odds/trigger").status_code == 503
