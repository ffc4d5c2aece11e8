"""
Subscription tier gating for engine output.

The engine computes everything for every book regardless of tier. These
helpers only decide what a caller on a given tier may see:

- free: quotes and edges from FREE_BOOKS only; no fair-probability
  overlays, EV figures or confidence badges, movement alerts or Kelly sizing
- pro: everything
"""
from dataclasses import replace
from enum import Enum
from typing import Any, Iterable, Optional

from edgefinder.betting.edge_detector import Edge
from edgefinder.betting.edge_scorer import edge_badge
from edgefinder.betting.fair_price import ConsensusPrice
from edgefinder.betting.line_scanner import best_lines_for_event
from edgefinder.config.constants import FREE_BOOKS
from edgefinder.data.line_history import MovementEvent
from edgefinder.data.models import Event, MarketType

# Edge fields only pro callers receive
PRO_EDGE_FIELDS = ("ev", "ev_display", "confidence", "discrepancy")


class Tier(str, Enum):
    """Subscription tier."""

    FREE = "free"
    PRO = "pro"

    @property
    def is_pro(self) -> bool:
        return self is Tier.PRO


def visible_books(tier: Tier) -> Optional[frozenset[str]]:
    """Book keys the tier may see, or None for every book."""
    return None if tier.is_pro else FREE_BOOKS


def is_visible_book(book_key: Optional[str], tier: Tier) -> bool:
    books = visible_books(tier)
    return books is None or (book_key or "").lower() in books


def restrict_event(event: Event, tier: Tier) -> Event:
    """Copy of the event holding only the books the tier may see."""
    if tier.is_pro:
        return event
    return replace(event, books=[b for b in event.books if is_visible_book(b.key, tier)])


def filter_edges(edges: Iterable[Edge], tier: Tier) -> list[dict[str, Any]]:
    """
    Serialize edges for a tier.

    Free callers get edges from free books only, stripped of EV and
    confidence. Order is preserved.
    """
    visible = []
    for edge in edges:
        if not is_visible_book(edge.book_key, tier):
            continue
        data = edge.to_dict()
        if not tier.is_pro:
            for key in PRO_EDGE_FIELDS:
                data.pop(key, None)
            data["locked"] = True
        visible.append(data)
    return visible


def filter_movements(
    movements: Iterable[MovementEvent],
    tier: Tier,
) -> list[dict[str, Any]]:
    """Movement alerts are pro-only; free callers get an empty list."""
    if not tier.is_pro:
        return []
    return [m.to_dict() for m in movements]


def can_size_bets(tier: Tier) -> bool:
    return tier.is_pro


def event_view(
    event: Event,
    consensus: Optional[dict[MarketType, ConsensusPrice]],
    tier: Tier,
    edge_score: Optional[int] = None,
    book_priority: Optional[Iterable[str]] = None,
) -> dict[str, Any]:
    """
    One event's quotes, best lines and (for pro) consensus overlays.

    Args:
        event: Parsed event
        consensus: Consensus per market type for this event
        tier: Caller's tier
        edge_score: Event edge score, shown to pro callers only
        book_priority: Tie-break order for best lines
    """
    visible = restrict_event(event, tier)
    books = []
    for book in visible.books:
        books.append({
            "key": book.key,
            "title": book.title,
            "markets": {
                market.market_type.value: [
                    {"name": q.name, "price": q.price, "point": q.point}
                    for q in market.quotes
                ]
                for market in book.markets
            },
        })

    best = best_lines_for_event(visible, book_priority=book_priority)
    best_lines = [
        {
            "market": market_type.value,
            "outcome": name,
            "book": line.book,
            "price": line.price,
            "point": line.point,
        }
        for (market_type, name), line in best.items()
    ]

    view: dict[str, Any] = {
        "event_id": event.event_id,
        "sport": event.sport,
        "game": event.game_name,
        "home_team": event.home_team,
        "away_team": event.away_team,
        "commence_time": event.commence_time.isoformat() if event.commence_time else None,
        "books": books,
        "best_lines": best_lines,
    }

    if tier.is_pro:
        view["consensus"] = {
            market_type.value: price.to_dict()
            for market_type, price in (consensus or {}).items()
        }
        if edge_score is not None:
            view["edge_score"] = edge_score
            view["edge_badge"] = edge_badge(edge_score).value
    else:
        view["locked"] = ["consensus", "edge_score"]

    return view


def filter_for_tier(result: Any, tier: Tier) -> dict[str, Any]:
    """
    Tier-filtered view of a whole refresh: edges and movements.

    Args:
        result: RefreshResult from the pipeline
        tier: Caller's tier
    """
    return {
        "tier": tier.value,
        "refreshed_at": result.refreshed_at.isoformat(),
        "edges": filter_edges(result.edges, tier),
        "movements": filter_movements(result.movements, tier),
    }
