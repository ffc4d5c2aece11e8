"""
Upstream feed clients for EdgeFinder.

Available sources:
- OddsAPIClient: The Odds API for real-time betting odds
- InjuryClient: ESPN injury reports
"""
from .base import (
    BaseDataSource,
    CachedDataSource,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    AuthenticationError,
    UpstreamUnavailableError,
    RetryConfig,
    CircuitBreaker,
    CircuitBreakerConfig,
)
from .odds_api import OddsAPIClient, OddsAPIClientFactory
from .espn_injuries import Injury, InjuryClient, injuries_by_team, parse_injuries

__all__ = [
    # Base classes
    "BaseDataSource",
    "CachedDataSource",
    "DataSourceError",
    "DataSourceHealth",
    "DataSourceStatus",
    "RateLimitError",
    "AuthenticationError",
    "UpstreamUnavailableError",
    "RetryConfig",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    # Clients
    "OddsAPIClient",
    "OddsAPIClientFactory",
    "Injury",
    "InjuryClient",
    "injuries_by_team",
    "parse_injuries",
]
