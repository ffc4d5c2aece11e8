"""API routers for EdgeFinder."""

from . import edges, health, injuries, kelly, movements, odds, refresh

__all__ = [
    "health",
    "edges",
    "odds",
    "injuries",
    "movements",
    "kelly",
    "refresh",
]
