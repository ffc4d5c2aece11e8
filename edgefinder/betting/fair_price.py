"""
Fair-price (de-vig) consensus engine.

Averages each outcome's implied probability across the books that quote
it and normalizes the averages to sum to 1. What is left over before
normalizing is the market hold.

Spread and total markets are only compared on their main line, the
point quoted by the most books, so quotes at different numbers are never
averaged together.
"""
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Iterable, Optional

from edgefinder.data.models import Event, MarketType, Quote

from .odds_converter import (
    american_to_implied_probability,
    implied_probability_to_american,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = 1) -> float:
    """Round away from zero on .5, unlike the builtin round()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass
class FairOutcome:
    """Vig-free estimate for one outcome."""

    name: str
    point: Optional[float]
    fair_prob: float
    fair_price: int
    avg_implied: float
    book_count: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "point": self.point,
            "fair_prob": self.fair_prob,
            "fair_price": self.fair_price,
            "avg_implied": self.avg_implied,
            "book_count": self.book_count,
        }


@dataclass
class ConsensusPrice:
    """Consensus across books for one market of one event."""

    outcomes: list[FairOutcome] = field(default_factory=list)
    hold_pct: float = 0.0

    def outcome(self, name: str) -> Optional[FairOutcome]:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    @property
    def total_probability(self) -> float:
        return sum(o.fair_prob for o in self.outcomes)

    def to_dict(self) -> dict:
        return {
            "hold_pct": self.hold_pct,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def devig(quotes_by_outcome: dict[str, list[Quote]]) -> Optional[ConsensusPrice]:
    """
    Remove the vig from a market's quotes.

    Args:
        quotes_by_outcome: Outcome key -> every book's quote for that outcome.
            A book missing an outcome simply has no entry in that list.

    Returns:
        ConsensusPrice, or None when fewer than two outcomes have quotes
    """
    averages = []
    for quotes in quotes_by_outcome.values():
        if not quotes:
            continue
        implied = [float(american_to_implied_probability(q.price)) for q in quotes]
        books = {q.book for q in quotes}
        averages.append((quotes[0], sum(implied) / len(implied), len(books)))

    if len(averages) < 2:
        return None

    total = sum(avg for _, avg, _ in averages)

    outcomes = []
    for sample, avg, book_count in averages:
        fair_prob = avg / total
        outcomes.append(
            FairOutcome(
                name=sample.name,
                point=sample.point,
                fair_prob=fair_prob,
                fair_price=implied_probability_to_american(fair_prob),
                avg_implied=avg,
                book_count=book_count,
            )
        )

    return ConsensusPrice(
        outcomes=outcomes,
        hold_pct=round_half_up((total - 1) * 100, 1),
    )


def main_line(quotes: Iterable[Quote]) -> Optional[float]:
    """
    The absolute point quoted by the most books.

    Ties go to the point seen first. Returns None when no quote carries
    a point.
    """
    books_per_point: dict[float, set[str]] = {}
    for quote in quotes:
        if quote.point is None:
            continue
        books_per_point.setdefault(abs(quote.point), set()).add(quote.book)

    if not books_per_point:
        return None

    best_point, best_count = None, 0
    for point, books in books_per_point.items():
        if len(books) > best_count:
            best_point, best_count = point, len(books)
    return best_point


def group_quotes(event: Event, market_type: MarketType) -> dict[str, list[Quote]]:
    """Group an event's quotes for one market by outcome key, in book order."""
    grouped: dict[str, list[Quote]] = {}
    for quote in event.quotes_for(market_type):
        grouped.setdefault(quote.outcome_key, []).append(quote)
    return grouped


def consensus_for_event(event: Event, market_type: MarketType) -> Optional[ConsensusPrice]:
    """
    Fair consensus for one market of an event.

    Moneyline quotes are grouped by outcome. Spread and total quotes are
    first restricted to the main line.
    """
    quotes = list(event.quotes_for(market_type))
    if not quotes:
        return None

    if market_type != MarketType.MONEYLINE:
        line = main_line(quotes)
        if line is None:
            return None
        quotes = [q for q in quotes if q.point is not None and abs(q.point) == line]

    grouped: dict[str, list[Quote]] = {}
    for quote in quotes:
        grouped.setdefault(quote.outcome_key, []).append(quote)

    return devig(grouped)


def consensus_for_slate(
    events: Iterable[Event],
    market_types: Iterable[MarketType] = tuple(MarketType),
) -> dict[str, dict[MarketType, ConsensusPrice]]:
    """Consensus for every market of every event that has one."""
    market_types = list(market_types)
    result: dict[str, dict[MarketType, ConsensusPrice]] = {}
    for event in events:
        per_market = {}
        for market_type in market_types:
            consensus = consensus_for_event(event, market_type)
            if consensus is not None:
                per_market[market_type] = consensus
        if per_market:
            result[event.event_id] = per_market
    logger.debug(f"Built consensus for {len(result)} events")
    return result


def calculate_hold(prices: Iterable[int]) -> Optional[float]:
    """
    Hold percentage of a single book's market.

    Examples:
        >>> calculate_hold([-110, -110])
        4.8
    """
    prices = list(prices)
    if len(prices) < 2:
        return None
    total = sum(float(american_to_implied_probability(p)) for p in prices)
    return round_half_up((total - 1) * 100, 1)


def books_per_outcome(grouped: dict[str, list[Quote]]) -> Counter:
    """Distinct book count per outcome key."""
    return Counter({key: len({q.book for q in quotes}) for key, quotes in grouped.items()})
