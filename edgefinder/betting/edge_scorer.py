"""
EV and edge scoring.

Both the consensus path (best price vs de-vigged fair probability) and
the cross-book path (best price vs the books' average implied
probability) score a price with the same EV formula.
"""
from enum import Enum
import math
from typing import Iterable, Optional

from edgefinder.config.constants import HIGH_CONFIDENCE_EV, MEDIUM_CONFIDENCE_EV
from edgefinder.data.models import Event, MarketType, Quote

from .odds_converter import (
    InvalidProbabilityError,
    american_to_decimal,
    american_to_implied_probability,
)


class Confidence(str, Enum):
    """Confidence tier of a detected edge."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class EdgeBadge(str, Enum):
    """Label for a composite edge score."""

    LOW = "LOW"
    MID = "MID"
    EDGE = "EDGE"
    HOT = "HOT"


def expected_value_pct(price: int, probability: float) -> float:
    """
    EV percent of a price given the probability the books imply for it.

    EV% = ((decimal * (1 - p) - p) / p) * 100

    Raises:
        InvalidProbabilityError: If probability is not in (0, 1)
    """
    if not 0 < probability < 1:
        raise InvalidProbabilityError(probability)
    decimal_odds = float(american_to_decimal(price))
    return ((decimal_odds * (1 - probability) - probability) / probability) * 100


def consensus_ev(best_price: int, fair_prob: float) -> float:
    """EV of the best available price against a de-vigged fair probability."""
    return expected_value_pct(best_price, fair_prob)


def average_implied(quotes: Iterable[Quote]) -> Optional[float]:
    """Mean implied probability of a set of quotes, None when empty."""
    implied = [float(american_to_implied_probability(q.price)) for q in quotes]
    if not implied:
        return None
    return sum(implied) / len(implied)


def cross_book_ev(best_price: int, quotes: Iterable[Quote]) -> Optional[float]:
    """EV of the best price against the average implied probability of all quotes."""
    avg = average_implied(quotes)
    if avg is None:
        return None
    return expected_value_pct(best_price, avg)


def confidence_tier(ev: float) -> Confidence:
    if ev >= HIGH_CONFIDENCE_EV:
        return Confidence.HIGH
    if ev >= MEDIUM_CONFIDENCE_EV:
        return Confidence.MEDIUM
    return Confidence.LOW


def edge_score(event: Event, history_size: int = 0) -> int:
    """
    Composite 0-100 rating of how much the books disagree on an event.

    Starts at 50 and adds:
        - home spread point range across books x 8 (max 20)
        - Over total point range x 5 (max 15)
        - home moneyline price range / 10 (max 15)
        - 3 per line-history snapshot once there are two or more (max 15)

    Returns:
        Score in [0, 100]; 0 when the event has no books
    """
    if not event.books:
        return 0

    spreads, totals, moneylines = [], [], []
    for book in event.books:
        for market in book.markets:
            for quote in market.quotes:
                if market.market_type == MarketType.SPREAD and quote.name == event.home_team:
                    if quote.point is not None:
                        spreads.append(quote.point)
                elif market.market_type == MarketType.TOTAL and quote.name == "Over":
                    if quote.point is not None:
                        totals.append(quote.point)
                elif market.market_type == MarketType.MONEYLINE and quote.name == event.home_team:
                    moneylines.append(quote.price)

    score = 50.0
    if len(spreads) >= 2:
        score += min((max(spreads) - min(spreads)) * 8, 20)
    if len(totals) >= 2:
        score += min((max(totals) - min(totals)) * 5, 15)
    if len(moneylines) >= 2:
        score += min((max(moneylines) - min(moneylines)) / 10, 15)
    if history_size >= 2:
        score += min(history_size * 3, 15)

    return min(max(math.floor(score + 0.5), 0), 100)


def edge_badge(score: int) -> EdgeBadge:
    """Badge for an edge score: <=40 LOW, <=60 MID, <=80 EDGE, else HOT."""
    if score <= 40:
        return EdgeBadge.LOW
    if score <= 60:
        return EdgeBadge.MID
    if score <= 80:
        return EdgeBadge.EDGE
    return EdgeBadge.HOT
