"""
Kelly Criterion bet sizing calculator.

Implements optimal bet sizing using the Kelly Criterion, reported as
full, half and quarter Kelly. A non-positive Kelly fraction means the
price offers no edge at the given win probability, which is reported
explicitly rather than as a zero-sized bet.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .odds_converter import (
    InvalidProbabilityError,
    american_to_decimal as _american_to_decimal,
    american_to_implied_probability,
)


def american_to_decimal(american: int) -> float:
    """Convert American odds to decimal odds as float."""
    return float(_american_to_decimal(american))


class RiskLevel(str, Enum):
    """How aggressive a full Kelly stake is."""

    CONSERVATIVE = "Conservative"  # <= 2% of bankroll
    MODERATE = "Moderate"  # <= 5%
    AGGRESSIVE = "Aggressive"


def kelly_fraction(price: int, win_probability: float) -> float:
    """
    Raw Kelly fraction f* = (b*p - q) / b, where b = decimal odds - 1.

    The result is not clamped and may be zero or negative.

    Raises:
        InvalidOddsError: If price is not a valid American price
        InvalidProbabilityError: If win_probability is not in (0, 1)
    """
    if not 0 < win_probability < 1:
        raise InvalidProbabilityError(win_probability)

    b = american_to_decimal(price) - 1  # Net odds (profit per unit wagered)
    p = win_probability
    q = 1 - p
    return (b * p - q) / b


def risk_level(full_kelly: float) -> RiskLevel:
    if full_kelly <= 0.02:
        return RiskLevel.CONSERVATIVE
    if full_kelly <= 0.05:
        return RiskLevel.MODERATE
    return RiskLevel.AGGRESSIVE


@dataclass
class KellySizing:
    """Full, half and quarter Kelly sizing for one bet."""

    price: int
    win_probability: float
    raw_kelly: float  # Unclamped f*
    full_kelly: float  # Fractions of bankroll, clamped at 0
    half_kelly: float
    quarter_kelly: float
    has_edge: bool
    implied_probability: float
    decimal_odds: float
    bankroll: Optional[float] = None
    full_stake: Optional[float] = None
    half_stake: Optional[float] = None
    quarter_stake: Optional[float] = None

    @property
    def edge_pct(self) -> float:
        """Win probability minus the price's implied probability, in points."""
        return (self.win_probability - self.implied_probability) * 100

    @property
    def verdict(self) -> str:
        return "Positive edge detected" if self.has_edge else "No edge - do not bet"

    @property
    def risk_level(self) -> RiskLevel:
        return risk_level(self.full_kelly)

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "win_probability": self.win_probability,
            "raw_kelly": self.raw_kelly,
            "full_kelly": self.full_kelly,
            "half_kelly": self.half_kelly,
            "quarter_kelly": self.quarter_kelly,
            "has_edge": self.has_edge,
            "verdict": self.verdict,
            "risk_level": self.risk_level.value,
            "edge_pct": round(self.edge_pct, 1),
            "decimal_odds": self.decimal_odds,
            "implied_probability": self.implied_probability,
            "bankroll": self.bankroll,
            "full_stake": self.full_stake,
            "half_stake": self.half_stake,
            "quarter_stake": self.quarter_stake,
        }


def size_bet(
    price: int,
    win_probability: float,
    bankroll: Optional[float] = None,
) -> KellySizing:
    """
    Size a bet with full, half and quarter Kelly.

    Args:
        price: American odds offered
        win_probability: Estimated true probability of winning (0-1)
        bankroll: Optional bankroll; dollar stakes are filled when positive

    Returns:
        KellySizing; has_edge is False when f* <= 0

    Example:
        >>> sizing = size_bet(-110, 0.55, bankroll=1000)
        >>> round(sizing.full_kelly, 4)
        0.055
    """
    raw = kelly_fraction(price, win_probability)
    full = max(0.0, raw)

    sizing = KellySizing(
        price=price,
        win_probability=win_probability,
        raw_kelly=raw,
        full_kelly=full,
        half_kelly=full / 2,
        quarter_kelly=full / 4,
        has_edge=raw > 0,
        implied_probability=float(american_to_implied_probability(price)),
        decimal_odds=american_to_decimal(price),
        bankroll=bankroll,
    )

    if bankroll is not None and bankroll > 0:
        sizing.full_stake = round(sizing.full_kelly * bankroll, 2)
        sizing.half_stake = round(sizing.half_kelly * bankroll, 2)
        sizing.quarter_stake = round(sizing.quarter_kelly * bankroll, 2)

    return sizing


@dataclass
class StakeRecommendation:
    """Recommended stake for a single bet."""

    full_kelly: float  # Full Kelly fraction (0-1)
    fractional_kelly: float  # After applying fraction (e.g., 25%)
    recommended_stake: float  # Dollar amount
    stake_percentage: float  # Percentage of bankroll
    has_edge: bool = True

    # Constraints applied
    capped_by_max: bool = False
    capped_by_min: bool = False
    below_minimum: bool = False  # Stake too small to place

    # Input parameters for reference
    win_probability: float = 0.0
    decimal_odds: float = 0.0
    bankroll: float = 0.0


class KellyCalculator:
    """
    Kelly Criterion calculator for bankroll-aware stake recommendations.

    Full Kelly can be volatile, so stakes use fractional Kelly (25% by
    default) and are capped at a share of the bankroll.

    Key formulas:
    - Full Kelly: f* = (bp - q) / b
      where b = net odds, p = win prob, q = lose prob
    - Fractional Kelly: f = f* x fraction

    Example:
        >>> kelly = KellyCalculator(fraction=0.25, max_stake_pct=0.05)
        >>> stake = kelly.calculate_stake(
        ...     bankroll=1000.0,
        ...     win_probability=0.55,
        ...     odds=-110
        ... )
        >>> print(f"Recommended stake: ${stake.recommended_stake:.2f}")
    """

    def __init__(
        self,
        fraction: float = 0.25,
        max_stake_pct: float = 0.05,
        min_stake: float = 1.0,
    ):
        """
        Initialize the Kelly calculator.

        Args:
            fraction: Kelly fraction to use (0.25 = quarter Kelly)
            max_stake_pct: Maximum stake as percentage of bankroll
            min_stake: Minimum dollar amount for a bet
        """
        if not 0 < fraction <= 1:
            raise ValueError("Fraction must be between 0 and 1")
        if not 0 < max_stake_pct <= 1:
            raise ValueError("Max stake percentage must be between 0 and 1")

        self.fraction = fraction
        self.max_stake_pct = max_stake_pct
        self.min_stake = min_stake

    @classmethod
    def from_settings(cls, settings) -> "KellyCalculator":
        return cls(
            fraction=float(settings.kelly.fraction),
            max_stake_pct=float(settings.kelly.max_stake_percent),
            min_stake=float(settings.kelly.min_stake),
        )

    def calculate_stake(
        self,
        bankroll: float,
        win_probability: float,
        odds: int,
    ) -> StakeRecommendation:
        """
        Calculate recommended stake for a bet.

        Args:
            bankroll: Current bankroll in dollars
            win_probability: Probability of winning (0-1)
            odds: American odds (e.g., -110, +150)

        Returns:
            StakeRecommendation with dollar amount and metadata
        """
        sizing = size_bet(odds, win_probability)
        full = sizing.full_kelly
        fractional = full * self.fraction

        stake = fractional * bankroll

        capped_by_max = False
        capped_by_min = False
        below_minimum = False

        max_stake = self.max_stake_pct * bankroll

        if stake > max_stake:
            stake = max_stake
            capped_by_max = True

        if stake < self.min_stake:
            if stake > 0 and stake >= self.min_stake * 0.5:
                # Close enough to round up to the minimum
                stake = self.min_stake
                capped_by_min = True
            else:
                below_minimum = True
                stake = 0.0

        stake_percentage = stake / bankroll if bankroll > 0 else 0

        return StakeRecommendation(
            full_kelly=full,
            fractional_kelly=fractional,
            recommended_stake=round(stake, 2),
            stake_percentage=stake_percentage,
            has_edge=sizing.has_edge,
            capped_by_max=capped_by_max,
            capped_by_min=capped_by_min,
            below_minimum=below_minimum,
            win_probability=win_probability,
            decimal_odds=sizing.decimal_odds,
            bankroll=bankroll,
        )
