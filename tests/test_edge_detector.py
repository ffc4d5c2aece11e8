"""
Tests for the market edge detector
Run with: pytest tests/test_edge_detector.py -v
"""
import pytest

from edgefinder.betting.edge_detector import (
    DetectionResult,
    Edge,
    EdgeDetector,
    describe_edge,
    sort_edges,
)
from edgefinder.betting.edge_scorer import Confidence
from edgefinder.data.models import MarketType, Quote

from factories import AWAY, HOME, NBA, bookmaker, make_event


def edge(ev, event_id="evt1"):
    return Edge(
        sport="NBA",
        event_id=event_id,
        game="A vs B",
        description="Moneyline: A @ +100",
        ev=ev,
        book="DraftKings",
        confidence=Confidence.HIGH,
        market_type=MarketType.MONEYLINE,
        price=100,
    )


class TestEmissionGate:
    """EV band and discrepancy path"""

    @pytest.fixture
    def detector(self):
        return EdgeDetector(min_books=3, min_ev=3.0, max_ev=25.0, min_line_discrepancy=20)

    def test_lower_bound_inclusive(self, detector):
        assert detector.passes_emission_gate(3.0, 0)
        assert not detector.passes_emission_gate(2.99, 0)

    def test_upper_bound_inclusive(self, detector):
        assert detector.passes_emission_gate(25.0, 0)
        assert not detector.passes_emission_gate(25.01, 0)

    def test_discrepancy_admits_small_positive_ev(self, detector):
        assert detector.passes_emission_gate(0.5, 20)
        assert not detector.passes_emission_gate(0.5, 19)

    def test_discrepancy_never_admits_non_positive_ev(self, detector):
        assert not detector.passes_emission_gate(0.0, 60)
        assert not detector.passes_emission_gate(-4.0, 60)

    def test_discrepancy_never_admits_anomalies(self, detector):
        assert not detector.passes_emission_gate(40.0, 60)


class TestScanEvent:

    def test_detects_favorite_edge(self, slate_event):
        result = EdgeDetector().scan_event(slate_event, NBA)

        assert len(result.edges) == 1
        found = result.edges[0]
        assert found.book_key == "fanduel"
        assert found.outcome == HOME
        assert found.price == -145
        assert found.ev == pytest.approx(13.93, abs=0.01)
        assert found.confidence == Confidence.HIGH
        assert found.book_count == 3
        assert found.discrepancy == 5
        assert found.sport == "NBA"
        assert found.description == f"Moneyline: {HOME} @ -145"
        assert found.ev_display == "+13.9%"

    def test_underdog_anomaly_is_suppressed(self, slate_event):
        result = EdgeDetector().scan_event(slate_event, NBA)
        assert result.suppressed == 1
        assert all(e.outcome != AWAY for e in result.edges)

    def test_thin_groups_skipped(self, slate_event):
        # spreads and totals split across points: no group reaches 3 books
        result = EdgeDetector().scan_event(slate_event, NBA)
        assert result.groups_evaluated == 2
        assert result.groups_skipped == 8

    def test_two_book_gate_applies_to_discrepancy_path(self):
        event = make_event([
            bookmaker("draftkings", h2h=(-170, 150)),
            bookmaker("fanduel", h2h=(-150, 130)),
        ])
        assert EdgeDetector().scan_event(event, NBA).edges == []

    def test_discrepancy_path_emits_low_confidence(self):
        event = make_event([
            bookmaker("draftkings", h2h=(-170, 150)),
            bookmaker("betmgm", h2h=(-170, 150)),
            bookmaker("fanduel", h2h=(-150, 130)),
        ])
        result = EdgeDetector().scan_event(event, NBA)

        home = [e for e in result.edges if e.outcome == HOME]
        assert len(home) == 1
        assert home[0].ev == pytest.approx(2.26, abs=0.01)
        assert home[0].discrepancy == 20
        assert home[0].confidence == Confidence.LOW

    def test_end_to_end_anomaly_not_emitted(self):
        event = make_event([
            bookmaker("draftkings", h2h=(-110, -110)),
            bookmaker("betmgm", h2h=(-105, -115)),
            bookmaker("fanduel", h2h=(102, -122)),
        ])
        result = EdgeDetector().scan_event(event, NBA)
        assert all(e.outcome != HOME for e in result.edges)
        assert result.suppressed >= 1

    def test_price_tie_goes_to_priority_book(self):
        event = make_event([
            bookmaker("caesars", h2h=(-145, 125)),
            bookmaker("draftkings", h2h=(-150, 130)),
            bookmaker("betmgm", h2h=(-150, 130)),
            bookmaker("fanduel", h2h=(-145, 125)),
        ])
        result = EdgeDetector(book_priority=["fanduel"]).scan_event(event, NBA)
        home = [e for e in result.edges if e.outcome == HOME]
        assert home[0].book_key == "fanduel"

    def test_empty_event(self):
        result = EdgeDetector().scan_event(make_event([]), NBA)
        assert result.edges == []
        assert result.groups_evaluated == 0


class TestSlates:

    def test_scan_slate_sorted_by_ev(self):
        strong = make_event(
            [
                bookmaker("draftkings", h2h=(-150, 130)),
                bookmaker("betmgm", h2h=(-150, 130)),
                bookmaker("fanduel", h2h=(-145, 125)),
            ],
            event_id="strong",
        )
        weak = make_event(
            [
                bookmaker("draftkings", h2h=(-170, 150)),
                bookmaker("betmgm", h2h=(-170, 150)),
                bookmaker("fanduel", h2h=(-150, 130)),
            ],
            event_id="weak",
        )
        result = EdgeDetector().scan_slate([weak, strong], NBA)
        assert [e.event_id for e in result.edges] == ["strong", "weak"]
        assert result.events_scanned == 2
        assert result.best_edge.event_id == "strong"

    def test_detect_edges_merges_sports(self, slate_event):
        nfl_event = make_event(
            [
                bookmaker("draftkings", h2h=(-170, 150)),
                bookmaker("betmgm", h2h=(-170, 150)),
                bookmaker("fanduel", h2h=(-150, 130)),
            ],
            event_id="nfl1",
            sport="americanfootball_nfl",
        )
        result = EdgeDetector().detect_edges({
            NBA: [slate_event],
            "americanfootball_nfl": [nfl_event],
        })
        assert [e.sport for e in result.edges] == ["NBA", "NFL"]
        assert result.events_scanned == 2

    def test_empty_slate(self):
        result = EdgeDetector().scan_slate([], NBA)
        assert result.edges == []
        assert result.best_edge is None


class TestHelpers:

    def test_sort_is_stable(self):
        edges = [edge(5.0, "a"), edge(9.0, "b"), edge(5.0, "c")]
        assert [e.event_id for e in sort_edges(edges)] == ["b", "a", "c"]

    def test_merge(self):
        merged = DetectionResult(edges=[edge(4.0, "a")], suppressed=1).merge(
            DetectionResult(edges=[edge(8.0, "b")], suppressed=2)
        )
        assert [e.event_id for e in merged.edges] == ["b", "a"]
        assert merged.suppressed == 3

    def test_describe_edge(self):
        assert describe_edge(
            MarketType.SPREAD, Quote(book="X", name="Lakers", price=-105, point=3.5)
        ) == "Spread: Lakers +3.5 @ -105"
        assert describe_edge(
            MarketType.TOTAL, Quote(book="X", name="Over", price=-108, point=221.5)
        ) == "Total: Over 221.5 @ -108"
        assert describe_edge(
            MarketType.MONEYLINE, Quote(book="X", name="Celtics", price=120)
        ) == "Moneyline: Celtics @ +120"

    def test_to_dict_rounds_ev(self):
        data = edge(13.926).to_dict()
        assert data["ev"] == 13.9
        assert data["confidence"] == "HIGH"
        assert data["market"] == "moneyline"
