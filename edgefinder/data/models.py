"""
Normalized odds data structures.

Feed JSON from The Odds API is parsed into Event -> BookLines -> Market
-> Quote. Every field the feed may omit is Optional, and a quote without
a name or a valid American price is dropped while parsing rather than
raised.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from loguru import logger

from edgefinder.config.constants import (
    MARKET_H2H,
    MARKET_SPREADS,
    MARKET_TOTALS,
    MIN_ODDS_MAGNITUDE,
)

_log = logger.bind(component="models")


class MarketType(str, Enum):
    """Market types tracked by the engine."""

    MONEYLINE = "moneyline"
    SPREAD = "spread"
    TOTAL = "total"

    @property
    def feed_key(self) -> str:
        return _MARKET_TO_FEED[self]

    @classmethod
    def from_feed_key(cls, key: Optional[str]) -> Optional["MarketType"]:
        """Map a feed market key (h2h, spreads, totals) to a MarketType."""
        return _FEED_TO_MARKET.get(key or "")


_FEED_TO_MARKET = {
    MARKET_H2H: MarketType.MONEYLINE,
    MARKET_SPREADS: MarketType.SPREAD,
    MARKET_TOTALS: MarketType.TOTAL,
}
_MARKET_TO_FEED = {v: k for k, v in _FEED_TO_MARKET.items()}


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 feed timestamp, tolerating a trailing 'Z'."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


def _entries(value: Any) -> list:
    """A feed array, or an empty list when the field is missing or not an array."""
    return value if isinstance(value, list) else []


def is_valid_price(price: Any) -> bool:
    """True for a finite numeric American price with magnitude of at least 100."""
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return False
    return math.isfinite(price) and abs(price) >= MIN_ODDS_MAGNITUDE


@dataclass
class Quote:
    """One book's price for one outcome."""

    book: str
    name: str
    price: int
    point: Optional[float] = None
    book_key: Optional[str] = None

    @property
    def outcome_key(self) -> str:
        """Grouping key: the name, plus the point for spread and total quotes."""
        if self.point is None:
            return self.name
        return f"{self.name}_{self.point:g}"

    @classmethod
    def from_feed(cls, data: dict, book: str, book_key: Optional[str] = None) -> Optional["Quote"]:
        if not isinstance(data, dict):
            _log.debug(f"Dropping non-object quote from {book}: {data!r}")
            return None
        name = data.get("name")
        price = data.get("price")
        if not name or not is_valid_price(price):
            _log.debug(f"Dropping malformed quote from {book}: {data!r}")
            return None

        point = data.get("point")
        if point is not None:
            try:
                point = float(point)
            except (TypeError, ValueError):
                _log.debug(f"Dropping quote with bad point from {book}: {data!r}")
                return None

        return cls(
            book=book,
            name=str(name),
            price=int(round(price)),
            point=point,
            book_key=book_key,
        )


@dataclass
class Market:
    """A single market as quoted by a single book."""

    market_type: MarketType
    book: str
    quotes: list[Quote] = field(default_factory=list)
    last_update: Optional[datetime] = None


@dataclass
class BookLines:
    """Everything one bookmaker quotes for an event."""

    key: str
    title: str
    markets: list[Market] = field(default_factory=list)
    last_update: Optional[datetime] = None

    def market(self, market_type: MarketType) -> Optional[Market]:
        for market in self.markets:
            if market.market_type == market_type:
                return market
        return None

    @classmethod
    def from_feed(cls, data: dict) -> Optional["BookLines"]:
        if not isinstance(data, dict):
            return None
        key = data.get("key")
        if not key:
            return None
        title = data.get("title") or key

        markets = []
        for raw_market in _entries(data.get("markets")):
            if not isinstance(raw_market, dict):
                continue
            market_type = MarketType.from_feed_key(raw_market.get("key"))
            if market_type is None:
                continue
            quotes = []
            for raw_outcome in _entries(raw_market.get("outcomes")):
                quote = Quote.from_feed(raw_outcome, book=title, book_key=key)
                if quote is not None:
                    quotes.append(quote)
            markets.append(
                Market(
                    market_type=market_type,
                    book=title,
                    quotes=quotes,
                    last_update=parse_timestamp(raw_market.get("last_update")),
                )
            )

        return cls(
            key=key,
            title=title,
            markets=markets,
            last_update=parse_timestamp(data.get("last_update")),
        )


@dataclass
class Event:
    """A sporting event with every book's lines."""

    event_id: str
    sport: str
    home_team: str
    away_team: str
    commence_time: Optional[datetime] = None
    books: list[BookLines] = field(default_factory=list)

    @property
    def game_name(self) -> str:
        return f"{self.away_team} vs {self.home_team}"

    def quotes_for(self, market_type: MarketType) -> Iterator[Quote]:
        """Yield every quote for a market type, in book order."""
        for book in self.books:
            market = book.market(market_type)
            if market is None:
                continue
            yield from market.quotes

    def book_keys(self) -> list[str]:
        return [book.key for book in self.books]

    @classmethod
    def from_feed(cls, data: dict, sport: Optional[str] = None) -> Optional["Event"]:
        """
        Build an Event from one element of the odds feed.

        Returns None when the event lacks an id or team names.
        """
        if not isinstance(data, dict):
            return None
        event_id = data.get("id")
        home = data.get("home_team")
        away = data.get("away_team")
        if not event_id or not home or not away:
            _log.debug(f"Skipping event without id/teams: {data.get('id')!r}")
            return None

        books = []
        for raw_book in _entries(data.get("bookmakers")):
            book = BookLines.from_feed(raw_book)
            if book is not None:
                books.append(book)

        return cls(
            event_id=str(event_id),
            sport=sport or data.get("sport_key") or "",
            home_team=home,
            away_team=away,
            commence_time=parse_timestamp(data.get("commence_time")),
            books=books,
        )


def parse_events(payload: Any, sport: Optional[str] = None) -> list[Event]:
    """Parse a feed response into events, skipping anything unusable."""
    if not isinstance(payload, list):
        _log.warning(f"Unexpected odds payload type: {type(payload).__name__}")
        return []

    events = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        event = Event.from_feed(raw, sport=sport)
        if event is not None:
            events.append(event)
    return events
