"""
Odds conversion and calculation utilities.

Provides functions for converting between American, decimal and
implied-probability odds, plus the vig and EV helpers built on them.

All conversions reject invalid input (a price of 0 or a magnitude
below 100, a probability outside (0, 1)) instead of returning a
misleading number.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional, Union

from edgefinder.config.constants import MIN_ODDS_MAGNITUDE

Number = Union[int, float, Decimal]


class OddsError(ValueError):
    """Base error for odds that cannot be converted."""


class InvalidOddsError(OddsError):
    """American price is 0 or otherwise not representable."""

    def __init__(self, price):
        super().__init__(
            f"Invalid American odds {price!r}: magnitude must be >= {MIN_ODDS_MAGNITUDE}"
        )
        self.price = price


class InvalidProbabilityError(OddsError):
    """Probability outside the open interval (0, 1)."""

    def __init__(self, probability):
        super().__init__(
            f"Invalid probability {probability!r}: must be strictly between 0 and 1"
        )
        self.probability = probability


class OddsFormats(NamedTuple):
    """Container for odds in multiple formats."""

    american: int
    decimal: Decimal
    implied_probability: Decimal


class VigorousLine(NamedTuple):
    """Two-way line with vig information."""

    side1_implied: Decimal
    side2_implied: Decimal
    total_implied: Decimal
    vig_percent: Decimal
    side1_fair: Decimal
    side2_fair: Decimal


def validate_american(american: Number) -> Decimal:
    """
    Check that a value is a usable American price.

    Returns:
        The price as a Decimal

    Raises:
        InvalidOddsError: If the price is 0, NaN or has magnitude below 100
    """
    try:
        value = Decimal(str(american))
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidOddsError(american) from None
    if not value.is_finite() or abs(value) < MIN_ODDS_MAGNITUDE:
        raise InvalidOddsError(american)
    return value


def _validate_probability(probability: Number) -> Decimal:
    try:
        value = Decimal(str(probability))
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidProbabilityError(probability) from None
    if not value.is_finite() or value <= 0 or value >= 1:
        raise InvalidProbabilityError(probability)
    return value


def american_to_decimal(american: Number) -> Decimal:
    """
    Convert American odds to decimal odds.

    Args:
        american: American odds (e.g., -110, +150)

    Returns:
        Decimal odds (e.g., 1.91, 2.50)

    Examples:
        >>> american_to_decimal(-110)
        Decimal('1.909090909090909090909090909')
        >>> american_to_decimal(+150)
        Decimal('2.5')
    """
    value = validate_american(american)
    if value > 0:
        return value / Decimal("100") + Decimal("1")
    return Decimal("100") / abs(value) + Decimal("1")


def decimal_to_american(decimal_odds: Number) -> int:
    """
    Convert decimal odds to American odds.

    Examples:
        >>> decimal_to_american(Decimal('1.91'))
        -110
        >>> decimal_to_american(Decimal('2.50'))
        150
    """
    value = Decimal(str(decimal_odds))
    if value <= 1:
        raise InvalidOddsError(decimal_odds)
    if value >= 2:
        return int(((value - 1) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((-100 / (value - 1)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def american_to_implied_probability(american: Number) -> Decimal:
    """
    Convert American odds to implied probability.

    Note: This includes the bookmaker's vig, so probabilities won't sum to 1.

    Examples:
        >>> american_to_implied_probability(-110)
        Decimal('0.5238095238095238095238095238')
        >>> american_to_implied_probability(+150)
        Decimal('0.4')
    """
    value = validate_american(american)
    if value > 0:
        return Decimal("100") / (value + Decimal("100"))
    return abs(value) / (abs(value) + Decimal("100"))


def implied_probability_to_american(probability: Number) -> int:
    """
    Convert implied probability to American odds.

    Probabilities of 0.5 and above map to negative (favorite) prices, so
    even money comes back as -100.

    Raises:
        InvalidProbabilityError: If probability is not in (0, 1)

    Examples:
        >>> implied_probability_to_american(Decimal('0.6'))
        -150
        >>> implied_probability_to_american(Decimal('0.4'))
        150
    """
    prob = _validate_probability(probability)
    if prob >= Decimal("0.5"):
        raw = -100 * prob / (1 - prob)
    else:
        raw = 100 * (1 - prob) / prob
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def convert_odds(american: int) -> OddsFormats:
    """Convert American odds to all formats."""
    return OddsFormats(
        american=american,
        decimal=american_to_decimal(american),
        implied_probability=american_to_implied_probability(american),
    )


def calculate_vig(odds1: int, odds2: int) -> VigorousLine:
    """
    Calculate the vig/juice for a two-way line.

    Examples:
        >>> result = calculate_vig(-110, -110)
        >>> result.vig_percent
        Decimal('4.761904761904761904761904762')
    """
    implied1 = american_to_implied_probability(odds1)
    implied2 = american_to_implied_probability(odds2)

    total_implied = implied1 + implied2

    # Vig is the excess over 100%
    vig_percent = (total_implied - Decimal("1")) * Decimal("100")

    return VigorousLine(
        side1_implied=implied1,
        side2_implied=implied2,
        total_implied=total_implied,
        vig_percent=vig_percent,
        side1_fair=implied1 / total_implied,
        side2_fair=implied2 / total_implied,
    )


def calculate_ev_percent(american_odds: Number, true_probability: float) -> Optional[float]:
    """
    Expected value of a bet as a percentage of stake.

    EV% = (decimal odds * p - 1) * 100

    Returns:
        EV percentage, or None when the probability is outside (0, 1)

    Examples:
        >>> round(calculate_ev_percent(150, 0.45), 2)
        12.5
    """
    if true_probability is None or not 0 < true_probability < 1:
        return None
    decimal_odds = american_to_decimal(american_odds)
    return float((decimal_odds * Decimal(str(true_probability)) - 1) * 100)


def is_positive_ev(book_odds: Optional[int], fair_odds: Optional[int]) -> bool:
    """
    Check whether a book's price beats the fair price.

    Higher American odds are always better for the bettor: -105 beats
    -110 and +115 beats +110.
    """
    if book_odds is None or fair_odds is None:
        return False
    return book_odds > fair_odds


def format_american_odds(odds: Optional[int]) -> str:
    """
    Format American odds with proper sign.

    Examples:
        >>> format_american_odds(-110)
        '-110'
        >>> format_american_odds(150)
        '+150'
    """
    if odds is None:
        return "-"
    if odds > 0:
        return f"+{odds}"
    return str(odds)


def format_point(point: Optional[float], signed: bool = True) -> str:
    """Format a spread or total point, dropping a trailing '.0'."""
    if point is None:
        return ""
    text = f"{point:g}"
    if signed and point > 0:
        return f"+{text}"
    return text


def format_probability_percent(probability: Number, decimals: int = 1) -> str:
    """
    Format probability as percentage string.

    Examples:
        >>> format_probability_percent(Decimal('0.5238'))
        '52.4%'
    """
    percent = Decimal(str(probability)) * 100
    return f"{percent:.{decimals}f}%"
