"""
Caching layer for EdgeFinder.

Provides:
- CacheBackend: interface for injectable backends
- InMemoryCache: per-process TTL cache
- CacheManager: namespaced keys, TTL per data type, get_or_set
"""
from .cache_manager import (
    CacheBackend,
    CacheManager,
    InMemoryCache,
)

__all__ = [
    "CacheBackend",
    "CacheManager",
    "InMemoryCache",
]
