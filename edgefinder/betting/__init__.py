"""
Odds math, consensus pricing and edge detection.

Provides tools for:
- Odds conversion and vig calculation
- De-vigged consensus fair prices
- Best-price scanning across books
- EV scoring and cross-book edge detection
- Kelly Criterion bet sizing
"""

from .odds_converter import (
    OddsError,
    InvalidOddsError,
    InvalidProbabilityError,
    american_to_decimal,
    american_to_implied_probability,
    decimal_to_american,
    implied_probability_to_american,
    calculate_vig,
    calculate_ev_percent,
    is_positive_ev,
    format_american_odds,
    format_probability_percent,
)

from .fair_price import (
    ConsensusPrice,
    FairOutcome,
    calculate_hold,
    consensus_for_event,
    consensus_for_slate,
    devig,
)

from .line_scanner import (
    BestLine,
    best_lines_for_event,
    find_best_odds,
    rank_books,
)

from .edge_scorer import (
    Confidence,
    EdgeBadge,
    confidence_tier,
    consensus_ev,
    cross_book_ev,
    edge_badge,
    edge_score,
    expected_value_pct,
)

from .edge_detector import (
    DetectionResult,
    Edge,
    EdgeDetector,
)

from .kelly_calculator import (
    KellyCalculator,
    KellySizing,
    StakeRecommendation,
    kelly_fraction,
    size_bet,
)

__all__ = [
    # Odds converter
    "OddsError",
    "InvalidOddsError",
    "InvalidProbabilityError",
    "american_to_decimal",
    "american_to_implied_probability",
    "decimal_to_american",
    "implied_probability_to_american",
    "calculate_vig",
    "calculate_ev_percent",
    "is_positive_ev",
    "format_american_odds",
    "format_probability_percent",
    # Consensus
    "ConsensusPrice",
    "FairOutcome",
    "calculate_hold",
    "consensus_for_event",
    "consensus_for_slate",
    "devig",
    # Best price
    "BestLine",
    "best_lines_for_event",
    "find_best_odds",
    "rank_books",
    # Scoring
    "Confidence",
    "EdgeBadge",
    "confidence_tier",
    "consensus_ev",
    "cross_book_ev",
    "edge_badge",
    "edge_score",
    "expected_value_pct",
    # Edge detection
    "DetectionResult",
    "Edge",
    "EdgeDetector",
    # Kelly sizing
    "KellyCalculator",
    "KellySizing",
    "StakeRecommendation",
    "kelly_fraction",
    "size_bet",
]
