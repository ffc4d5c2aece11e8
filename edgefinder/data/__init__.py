"""
Data layer for EdgeFinder.

Provides:
- Normalized odds models parsed from The Odds API feed
- In-memory line history and movement detection
"""
from .models import (
    BookLines,
    Event,
    Market,
    MarketType,
    Quote,
    parse_events,
)
from .line_history import (
    LineKey,
    LineMovementDetector,
    LineSnapshot,
    MovementEvent,
    MovementThresholds,
    default_favorability_policy,
)

__all__ = [
    # Models
    "BookLines",
    "Event",
    "Market",
    "MarketType",
    "Quote",
    "parse_events",
    # Line history
    "LineKey",
    "LineMovementDetector",
    "LineSnapshot",
    "MovementEvent",
    "MovementThresholds",
    "default_favorability_policy",
]
