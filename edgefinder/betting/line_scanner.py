"""
Best-price scanner.

Finds the most favorable price for an outcome across bookmakers. A higher
American price always pays more: +150 beats -105, which beats -110.

Equal prices are resolved by book order, which is explicit: books named
in the priority list come first (in that order), then the remaining books
in the order the feed listed them.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from edgefinder.data.models import BookLines, Event, MarketType, Quote


@dataclass
class BestLine:
    """Best available line from any bookmaker."""

    name: str
    book: str
    price: int
    point: Optional[float] = None
    book_key: Optional[str] = None

    @classmethod
    def from_quote(cls, quote: Quote) -> "BestLine":
        return cls(
            name=quote.name,
            book=quote.book,
            price=quote.price,
            point=quote.point,
            book_key=quote.book_key,
        )


def order_books(
    books: Iterable[BookLines],
    book_priority: Optional[Iterable[str]] = None,
) -> list[BookLines]:
    """
    Order books for tie-breaking.

    Args:
        books: Books in feed order
        book_priority: Book keys that should be considered first

    Returns:
        Prioritized books followed by the rest in feed order
    """
    books = list(books)
    if not book_priority:
        return books

    rank = {key: i for i, key in enumerate(book_priority)}
    prioritized = sorted((b for b in books if b.key in rank), key=lambda b: rank[b.key])
    rest = [b for b in books if b.key not in rank]
    return prioritized + rest


def _candidate_quotes(
    event: Event,
    market_type: MarketType,
    outcome_name: Optional[str],
    book_priority: Optional[Iterable[str]],
) -> list[Quote]:
    candidates = []
    for book in order_books(event.books, book_priority):
        market = book.market(market_type)
        if market is None or not market.quotes:
            continue
        if outcome_name is None:
            candidates.append(market.quotes[0])
            continue
        for quote in market.quotes:
            if quote.name == outcome_name:
                candidates.append(quote)
                break
    return candidates


def find_best_odds(
    event: Event,
    market_type: MarketType,
    outcome_name: Optional[str] = None,
    book_priority: Optional[Iterable[str]] = None,
) -> Optional[BestLine]:
    """
    Find the best odds across bookmakers for a specific outcome.

    Args:
        event: Event with every book's lines
        market_type: Market to search
        outcome_name: Exact outcome label; when omitted each book
            contributes its first listed outcome
        book_priority: Book keys that win ties, in order

    Returns:
        BestLine, or None if no book quotes the outcome
    """
    best: Optional[Quote] = None
    for quote in _candidate_quotes(event, market_type, outcome_name, book_priority):
        # Strictly greater keeps the first book on ties
        if best is None or quote.price > best.price:
            best = quote

    if best is None:
        return None
    return BestLine.from_quote(best)


def rank_books(
    event: Event,
    market_type: MarketType,
    outcome_name: str,
    book_priority: Optional[Iterable[str]] = None,
) -> list[BestLine]:
    """Every book's quote for an outcome, best price first (stable on ties)."""
    quotes = _candidate_quotes(event, market_type, outcome_name, book_priority)
    return [BestLine.from_quote(q) for q in sorted(quotes, key=lambda q: -q.price)]


def best_lines_for_event(
    event: Event,
    book_priority: Optional[Iterable[str]] = None,
    market_types: Iterable[MarketType] = tuple(MarketType),
) -> dict[tuple[MarketType, str], BestLine]:
    """
    Best line for every outcome name of every market of an event.

    Returns:
        Dict mapping (market type, outcome name) to best line
    """
    book_priority = list(book_priority or [])
    result: dict[tuple[MarketType, str], BestLine] = {}
    for market_type in market_types:
        names = []
        for quote in event.quotes_for(market_type):
            if quote.name not in names:
                names.append(quote.name)
        for name in names:
            best = find_best_odds(event, market_type, name, book_priority)
            if best is not None:
                result[(market_type, name)] = best
    return result
