"""
Cross-book edge detection.

Flags outcomes where the best available price beats the average of what
every book is offering. For each event and market the quotes are grouped
by outcome, thin groups are dropped, and the best price is scored
against the group's average implied probability.

An edge is emitted when its EV falls inside [min_ev, max_ev], or when
the books disagree by at least min_line_discrepancy and EV is positive.
EV above max_ev is treated as a stale or bad quote and suppressed.
"""
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Iterable, Optional

from edgefinder.config.constants import (
    MAX_EV_THRESHOLD,
    MIN_BOOKS,
    MIN_EV_THRESHOLD,
    MIN_LINE_DISCREPANCY,
    sport_label,
)
from edgefinder.data.models import Event, MarketType, Quote

from .edge_scorer import Confidence, confidence_tier, cross_book_ev
from .fair_price import books_per_outcome, group_quotes
from .odds_converter import format_american_odds, format_point

logger = logging.getLogger(__name__)


@dataclass
class Edge:
    """
    A detected pricing edge.

    Built fresh on every scan; edges are never updated in place.
    """

    # Identification
    sport: str
    event_id: str
    game: str
    description: str  # "Spread: Lakers +3.5 @ +105"

    # Edge metrics
    ev: float
    book: str
    confidence: Confidence

    # Market information
    market_type: MarketType
    price: int
    point: Optional[float] = None
    book_count: int = 0
    discrepancy: int = 0

    # Context
    sport_key: Optional[str] = None
    outcome: Optional[str] = None
    book_key: Optional[str] = None
    commence_time: Optional[datetime] = None

    detected_at: datetime = field(default_factory=datetime.now)

    @property
    def ev_display(self) -> str:
        return f"+{self.ev:.1f}%"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "sport": self.sport,
            "sport_key": self.sport_key,
            "event_id": self.event_id,
            "game": self.game,
            "edge": self.description,
            "ev": round(self.ev, 1),
            "ev_display": self.ev_display,
            "book": self.book,
            "book_key": self.book_key,
            "confidence": self.confidence.value,
            "market": self.market_type.value,
            "outcome": self.outcome,
            "price": self.price,
            "point": self.point,
            "book_count": self.book_count,
            "discrepancy": self.discrepancy,
            "commence_time": self.commence_time.isoformat() if self.commence_time else None,
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass
class DetectionResult:
    """Result of an edge detection scan."""

    edges: list[Edge] = field(default_factory=list)
    scanned_at: datetime = field(default_factory=datetime.now)
    events_scanned: int = 0
    groups_evaluated: int = 0
    groups_skipped: int = 0
    suppressed: int = 0

    @property
    def best_edge(self) -> Optional[Edge]:
        """Edge with the highest EV."""
        if not self.edges:
            return None
        return self.edges[0]

    def merge(self, other: "DetectionResult") -> "DetectionResult":
        """Combine two results, keeping edges sorted by EV (stable)."""
        return DetectionResult(
            edges=sort_edges(self.edges + other.edges),
            scanned_at=max(self.scanned_at, other.scanned_at),
            events_scanned=self.events_scanned + other.events_scanned,
            groups_evaluated=self.groups_evaluated + other.groups_evaluated,
            groups_skipped=self.groups_skipped + other.groups_skipped,
            suppressed=self.suppressed + other.suppressed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned_at": self.scanned_at.isoformat(),
            "events_scanned": self.events_scanned,
            "groups_evaluated": self.groups_evaluated,
            "edges": [e.to_dict() for e in self.edges],
        }


def sort_edges(edges: Iterable[Edge]) -> list[Edge]:
    """Sort by EV descending. sorted() is stable, so equal EVs keep their order."""
    return sorted(edges, key=lambda e: e.ev, reverse=True)


def describe_edge(market_type: MarketType, quote: Quote) -> str:
    """
    Human-readable edge description.

    Examples:
        Moneyline: Celtics @ +120
        Spread: Lakers +3.5 @ -105
        Total: Over 221.5 @ -108
    """
    price = format_american_odds(quote.price)
    if market_type == MarketType.MONEYLINE:
        return f"Moneyline: {quote.name} @ {price}"
    if market_type == MarketType.SPREAD:
        return f"Spread: {quote.name} {format_point(quote.point)} @ {price}"
    return f"Total: {quote.name} {format_point(quote.point, signed=False)} @ {price}"


class EdgeDetector:
    """
    Detects mispriced lines by comparing each book's price to the field.

    Example:
        >>> detector = EdgeDetector(min_books=3, min_ev=3.0)
        >>> result = detector.scan_slate(events, "basketball_nba")
        >>> for edge in result.edges:
        ...     print(edge.description, edge.ev_display)
    """

    MARKETS = (MarketType.MONEYLINE, MarketType.SPREAD, MarketType.TOTAL)

    def __init__(
        self,
        min_books: int = MIN_BOOKS,
        min_ev: float = MIN_EV_THRESHOLD,
        max_ev: float = MAX_EV_THRESHOLD,
        min_line_discrepancy: int = MIN_LINE_DISCREPANCY,
        book_priority: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the edge detector.

        Args:
            min_books: Distinct books required before an outcome is evaluated
            min_ev: Minimum EV percent to emit an edge
            max_ev: EV percent above which a quote is treated as bad data
            min_line_discrepancy: Price spread that admits any positive EV
            book_priority: Book keys that win price ties, in order
        """
        self.min_books = min_books
        self.min_ev = min_ev
        self.max_ev = max_ev
        self.min_line_discrepancy = min_line_discrepancy
        self.book_priority = list(book_priority or [])

    @classmethod
    def from_settings(cls, settings) -> "EdgeDetector":
        edge = settings.edge_detection
        return cls(
            min_books=edge.min_books,
            min_ev=edge.min_ev_threshold,
            max_ev=edge.max_ev_threshold,
            min_line_discrepancy=edge.min_line_discrepancy,
            book_priority=edge.book_priority,
        )

    def passes_emission_gate(self, ev: float, discrepancy: int) -> bool:
        """True if an outcome with this EV and price discrepancy should be emitted."""
        if self.min_ev <= ev <= self.max_ev:
            return True
        return discrepancy >= self.min_line_discrepancy and 0 < ev <= self.max_ev

    def _ordered(self, quotes: list[Quote]) -> list[Quote]:
        if not self.book_priority:
            return quotes
        rank = {key: i for i, key in enumerate(self.book_priority)}
        first = sorted(
            (q for q in quotes if q.book_key in rank), key=lambda q: rank[q.book_key]
        )
        return first + [q for q in quotes if q.book_key not in rank]

    def evaluate_group(
        self,
        event: Event,
        market_type: MarketType,
        quotes: list[Quote],
        sport: str,
    ) -> tuple[Optional[Edge], bool]:
        """
        Score one outcome group.

        Returns:
            Tuple of (edge or None, whether EV was above max_ev)
        """
        quotes = self._ordered(quotes)

        best = quotes[0]
        worst = quotes[0]
        for quote in quotes[1:]:
            if quote.price > best.price:
                best = quote
            if quote.price < worst.price:
                worst = quote

        ev = cross_book_ev(best.price, quotes)
        if ev is None:
            return None, False

        discrepancy = abs(best.price - worst.price)

        if not self.passes_emission_gate(ev, discrepancy):
            return None, ev > self.max_ev

        edge = Edge(
            sport=sport_label(sport),
            sport_key=sport,
            event_id=event.event_id,
            game=event.game_name,
            description=describe_edge(market_type, best),
            ev=ev,
            book=best.book,
            book_key=best.book_key,
            confidence=confidence_tier(ev),
            market_type=market_type,
            outcome=best.name,
            price=best.price,
            point=best.point,
            book_count=len({q.book for q in quotes}),
            discrepancy=discrepancy,
            commence_time=event.commence_time,
        )
        return edge, False

    def scan_event(self, event: Event, sport: str) -> DetectionResult:
        """Scan every market of a single event."""
        result = DetectionResult(events_scanned=1)

        for market_type in self.MARKETS:
            grouped = group_quotes(event, market_type)
            book_counts = books_per_outcome(grouped)

            for outcome_key, quotes in grouped.items():
                if book_counts[outcome_key] < self.min_books:
                    result.groups_skipped += 1
                    continue

                result.groups_evaluated += 1
                edge, suppressed = self.evaluate_group(event, market_type, quotes, sport)
                if suppressed:
                    result.suppressed += 1
                    logger.debug(
                        f"Suppressed {outcome_key} on {event.event_id}: EV above {self.max_ev}"
                    )
                if edge is not None:
                    result.edges.append(edge)

        return result

    def scan_slate(self, events: Iterable[Event], sport: str) -> DetectionResult:
        """
        Scan every event of a sport.

        Args:
            events: Parsed events for one sport
            sport: Feed sport key

        Returns:
            DetectionResult with edges sorted by EV, highest first
        """
        result = DetectionResult()
        for event in events:
            event_result = self.scan_event(event, sport)
            result.edges.extend(event_result.edges)
            result.events_scanned += 1
            result.groups_evaluated += event_result.groups_evaluated
            result.groups_skipped += event_result.groups_skipped
            result.suppressed += event_result.suppressed

        result.edges = sort_edges(result.edges)
        logger.info(
            f"Edge scan for {sport}: {len(result.edges)} edges from "
            f"{result.events_scanned} events ({result.suppressed} suppressed)"
        )
        return result

    def detect_edges(self, slates: dict[str, Iterable[Event]]) -> DetectionResult:
        """Scan several sports and merge the results into one EV-sorted list."""
        combined = DetectionResult()
        for sport, events in slates.items():
            combined = combined.merge(self.scan_slate(events, sport))
        return combined
