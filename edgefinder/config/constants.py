"""
Constants for the EdgeFinder engine.

Contains sport keys and labels, feed market keys, bookmaker lists and
the default edge and movement thresholds.
"""
from typing import Final


# =============================================================================
# SPORTS
# =============================================================================
TRACKED_SPORTS: Final[list[str]] = [
    "basketball_nba",
    "americanfootball_nfl",
    "icehockey_nhl",
    "baseball_mlb",
    "mma_mixed_martial_arts",
]

SPORT_LABELS: Final[dict[str, str]] = {
    "basketball_nba": "NBA",
    "americanfootball_nfl": "NFL",
    "americanfootball_ncaaf": "NCAAF",
    "basketball_ncaab": "NCAAB",
    "icehockey_nhl": "NHL",
    "baseball_mlb": "MLB",
    "mma_mixed_martial_arts": "UFC",
}

# ESPN site API paths for the injury feed
SPORT_ESPN_MAP: Final[dict[str, str]] = {
    "basketball_nba": "basketball/nba",
    "americanfootball_nfl": "football/nfl",
    "icehockey_nhl": "hockey/nhl",
    "baseball_mlb": "baseball/mlb",
}


def sport_label(sport_key: str) -> str:
    """Short display label for a feed sport key."""
    return SPORT_LABELS.get(sport_key, sport_key.upper())


# =============================================================================
# ODDS
# =============================================================================
# Smallest valid |American price|
MIN_ODDS_MAGNITUDE: Final[int] = 100


# =============================================================================
# MARKETS
# =============================================================================
MARKET_H2H: Final[str] = "h2h"
MARKET_SPREADS: Final[str] = "spreads"
MARKET_TOTALS: Final[str] = "totals"

DEFAULT_MARKETS: Final[list[str]] = [MARKET_H2H, MARKET_SPREADS, MARKET_TOTALS]


# =============================================================================
# BOOKMAKERS
# =============================================================================
# Books visible on the free tier
FREE_BOOKS: Final[frozenset[str]] = frozenset({"fanduel", "draftkings", "betmgm"})

# Books that win ties on equal prices, in order
DEFAULT_BOOK_PRIORITY: Final[list[str]] = [
    "draftkings",
    "fanduel",
    "betmgm",
    "caesars",
]


# =============================================================================
# EDGE DETECTION
# =============================================================================
MIN_BOOKS: Final[int] = 3
MIN_EV_THRESHOLD: Final[float] = 3.0
MAX_EV_THRESHOLD: Final[float] = 25.0
MIN_LINE_DISCREPANCY: Final[int] = 20

HIGH_CONFIDENCE_EV: Final[float] = 5.0
MEDIUM_CONFIDENCE_EV: Final[float] = 3.0


# =============================================================================
# LINE MOVEMENT
# =============================================================================
SPREAD_MOVE_THRESHOLD: Final[float] = 1.0
TOTAL_MOVE_THRESHOLD: Final[float] = 2.0
MONEYLINE_MOVE_THRESHOLD: Final[int] = 15
LINE_HISTORY_SIZE: Final[int] = 20
MAX_MOVEMENTS: Final[int] = 50
