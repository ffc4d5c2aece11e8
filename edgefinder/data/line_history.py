"""
In-memory line history and movement detection.

Keeps the best available line per (event, market, outcome) between
refreshes and reports significant changes. Spread and total lines are
read at the outcome's main line (the point most books quote), so the best
price hopping to a book on a different number is not a line move.

Thresholds:
- Spread: point moved by 1.0 or more
- Total: point moved by 2.0 or more
- Moneyline: price moved by 15 or more

Spread and total lines are tracked per outcome name rather than per
name+point, otherwise a moved line would look like a brand-new outcome.

History is bounded: each line keeps its last N snapshots and only the
most recent movements are retained.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
import threading
from typing import Callable, Iterable, Optional

from loguru import logger

from edgefinder.betting.fair_price import main_line
from edgefinder.betting.line_scanner import BestLine, best_lines_for_event, rank_books
from edgefinder.betting.odds_converter import format_american_odds, format_point
from edgefinder.config.constants import (
    LINE_HISTORY_SIZE,
    MAX_MOVEMENTS,
    MONEYLINE_MOVE_THRESHOLD,
    SPREAD_MOVE_THRESHOLD,
    TOTAL_MOVE_THRESHOLD,
)

from .models import Event, MarketType

# (event_id, market_type, outcome_name)
LineKey = tuple[str, MarketType, str]


@dataclass
class LineSnapshot:
    """Best available line for one outcome at a point in time."""

    event_id: str
    market_type: MarketType
    outcome: str
    price: int
    book: str
    timestamp: datetime
    point: Optional[float] = None

    @property
    def key(self) -> LineKey:
        return (self.event_id, self.market_type, self.outcome)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "market": self.market_type.value,
            "outcome": self.outcome,
            "price": self.price,
            "point": self.point,
            "book": self.book,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class MovementEvent:
    """A significant change in a line between two refreshes."""

    event_id: str
    game: str
    sport: str
    market_type: MarketType
    outcome: str
    old_price: int
    new_price: int
    old_point: Optional[float]
    new_point: Optional[float]
    direction: str  # "up" or "down"
    is_favorable: bool
    detected_at: datetime

    @property
    def old_line(self) -> str:
        return _display_line(self.market_type, self.old_price, self.old_point)

    @property
    def new_line(self) -> str:
        return _display_line(self.market_type, self.new_price, self.new_point)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "game": self.game,
            "sport": self.sport,
            "market": self.market_type.value,
            "outcome": self.outcome,
            "old_line": self.old_line,
            "new_line": self.new_line,
            "old_price": self.old_price,
            "new_price": self.new_price,
            "old_point": self.old_point,
            "new_point": self.new_point,
            "direction": self.direction,
            "is_favorable": self.is_favorable,
            "detected_at": self.detected_at.isoformat(),
        }


def _display_line(market_type: MarketType, price: int, point: Optional[float]) -> str:
    if market_type == MarketType.SPREAD:
        return format_point(point)
    if market_type == MarketType.TOTAL:
        return format_point(point, signed=False)
    return format_american_odds(price)


@dataclass
class MovementThresholds:
    """Minimum change that counts as a significant move, per market."""

    spread: float = SPREAD_MOVE_THRESHOLD
    total: float = TOTAL_MOVE_THRESHOLD
    moneyline: int = MONEYLINE_MOVE_THRESHOLD

    def is_significant(self, old: LineSnapshot, new: LineSnapshot) -> bool:
        if old.market_type == MarketType.MONEYLINE:
            return abs(new.price - old.price) >= self.moneyline
        if old.point is None or new.point is None:
            return False
        diff = abs(new.point - old.point)
        if old.market_type == MarketType.SPREAD:
            return diff >= self.spread
        return diff >= self.total


FavorabilityPolicy = Callable[[LineSnapshot, LineSnapshot], bool]


def default_favorability_policy(old: LineSnapshot, new: LineSnapshot) -> bool:
    """
    Whether a move helps someone betting the outcome now.

    Spread: getting more points is favorable. Total: judged on price,
    since a higher number helps the Under and hurts the Over.
    Moneyline: a higher price pays more.
    """
    if old.market_type == MarketType.SPREAD:
        return (new.point or 0) > (old.point or 0)
    return new.price > old.price


@dataclass
class _LineState:
    snapshot: LineSnapshot
    history: deque = field(default_factory=deque)


class LineMovementDetector:
    """
    Tracks best lines across refreshes and emits significant movements.

    Example:
        >>> detector = LineMovementDetector()
        >>> detector.update(first_pull)   # seeds history, no movements
        []
        >>> moves = detector.update(second_pull)
        >>> for move in moves:
        ...     print(move.outcome, move.old_line, "->", move.new_line)
    """

    def __init__(
        self,
        history_size: int = LINE_HISTORY_SIZE,
        max_movements: int = MAX_MOVEMENTS,
        thresholds: Optional[MovementThresholds] = None,
        favorability_policy: FavorabilityPolicy = default_favorability_policy,
        book_priority: Optional[Iterable[str]] = None,
    ):
        if history_size < 1 or max_movements < 1:
            raise ValueError("history_size and max_movements must be positive")

        self.history_size = history_size
        self.max_movements = max_movements
        self.thresholds = thresholds or MovementThresholds()
        self.favorability_policy = favorability_policy
        self.book_priority = list(book_priority or [])

        self._lines: dict[LineKey, _LineState] = {}
        self._movements: deque[MovementEvent] = deque(maxlen=max_movements)
        self._lock = threading.Lock()
        self.logger = logger.bind(component="line_history")

    @classmethod
    def from_settings(cls, settings) -> "LineMovementDetector":
        movement = settings.line_movement
        return cls(
            history_size=movement.history_size,
            max_movements=movement.max_movements,
            thresholds=MovementThresholds(
                spread=movement.spread_threshold,
                total=movement.total_threshold,
                moneyline=movement.moneyline_threshold,
            ),
            book_priority=settings.edge_detection.book_priority,
        )

    def _main_line_best(self, event: Event, market_type: MarketType, name: str) -> Optional[BestLine]:
        """Best price among the books quoting the outcome's main line."""
        ranked = rank_books(event, market_type, name, self.book_priority)
        point = main_line(ranked)
        for line in ranked:
            if line.point is not None and abs(line.point) == point:
                return line
        return None

    def _snapshots_for(self, event: Event, now: datetime) -> list[LineSnapshot]:
        snapshots = []
        lines = best_lines_for_event(event, self.book_priority)
        for (market_type, name), best in lines.items():
            if market_type != MarketType.MONEYLINE:
                best = self._main_line_best(event, market_type, name) or best
            snapshots.append(
                LineSnapshot(
                    event_id=event.event_id,
                    market_type=market_type,
                    outcome=name,
                    price=best.price,
                    point=best.point,
                    book=best.book,
                    timestamp=now,
                )
            )
        return snapshots

    def _compare(self, event: Event, old: LineSnapshot, new: LineSnapshot) -> Optional[MovementEvent]:
        if not self.thresholds.is_significant(old, new):
            return None

        went_up = new.price > old.price or (
            new.point is not None and old.point is not None and new.point > old.point
        )
        return MovementEvent(
            event_id=event.event_id,
            game=event.game_name,
            sport=event.sport,
            market_type=new.market_type,
            outcome=new.outcome,
            old_price=old.price,
            new_price=new.price,
            old_point=old.point,
            new_point=new.point,
            direction="up" if went_up else "down",
            is_favorable=self.favorability_policy(old, new),
            detected_at=new.timestamp,
        )

    def update(self, events: Iterable[Event], now: Optional[datetime] = None) -> list[MovementEvent]:
        """
        Record the current best lines and return the significant movements.

        The first observation of a line only seeds its history.

        Args:
            events: Freshly parsed events
            now: Observation time (defaults to datetime.now())

        Returns:
            Movements detected in this update
        """
        now = now or datetime.now()
        detected: list[MovementEvent] = []

        with self._lock:
            for event in events:
                for snapshot in self._snapshots_for(event, now):
                    state = self._lines.get(snapshot.key)
                    if state is None:
                        state = _LineState(
                            snapshot=snapshot,
                            history=deque(maxlen=self.history_size),
                        )
                        state.history.append(snapshot)
                        self._lines[snapshot.key] = state
                        continue

                    movement = self._compare(event, state.snapshot, snapshot)
                    if movement is not None:
                        detected.append(movement)

                    state.snapshot = snapshot
                    state.history.append(snapshot)

            # Newest first
            for movement in reversed(detected):
                self._movements.appendleft(movement)

        if detected:
            self.logger.info(f"Detected {len(detected)} line movements")
        return detected

    def history(self, key: LineKey) -> list[LineSnapshot]:
        """Chronological snapshots for a line, oldest first."""
        with self._lock:
            state = self._lines.get(key)
            return list(state.history) if state else []

    def snapshot(self, key: LineKey) -> Optional[LineSnapshot]:
        """Latest snapshot of record for a line."""
        with self._lock:
            state = self._lines.get(key)
            return state.snapshot if state else None

    def event_history_depth(self, event_id: str) -> int:
        """Longest snapshot history among an event's lines."""
        with self._lock:
            depths = [len(s.history) for k, s in self._lines.items() if k[0] == event_id]
        return max(depths, default=0)

    def recent_movements(self, limit: Optional[int] = None) -> list[MovementEvent]:
        """Most recent movements, newest first."""
        with self._lock:
            movements = list(self._movements)
        if limit is not None:
            movements = movements[:limit]
        return movements

    @property
    def tracked_lines(self) -> int:
        return len(self._lines)

    def reset(self) -> None:
        """Forget all lines and movements."""
        with self._lock:
            self._lines.clear()
            self._movements.clear()
        self.logger.info("Line history reset")
