"""Shared fixtures."""
import pytest

from factories import NBA, FakeOddsClient, edge_slate, make_event


@pytest.fixture
def slate_event():
    return make_event(edge_slate())


@pytest.fixture
def fake_odds_client(slate_event) -> FakeOddsClient:
    return FakeOddsClient({NBA: [slate_event]})
