"""
Caching layer with a pluggable backend.

The engine only needs a per-process cache, so the bundled backend is an
in-memory store of key -> (value, expiry). Anything implementing
CacheBackend can be injected instead.

Supports TTL-based expiration per data type and prefix-based
invalidation.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Set a value in cache with TTL."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key from cache."""
        pass

    @abstractmethod
    async def clear_prefix(self, prefix: str) -> None:
        """Clear all keys with given prefix."""
        pass

    @abstractmethod
    async def get_ttl(self, key: str) -> Optional[int]:
        """Get remaining TTL for a key in seconds."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the cache connection."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache backend.

    Data is lost when the process exits. The clock is injectable so
    expiry can be tested without sleeping.
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic):
        self._cache: dict[str, tuple[Any, Optional[float]]] = {}  # value, expiry_time
        self._max_size = max_size
        self._clock = clock
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key not in self._cache:
                return None

            value, expiry_time = self._cache[key]

            if expiry_time is not None and self._clock() >= expiry_time:
                del self._cache[key]
                return None

            return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        async with self._lock:
            if key not in self._cache and len(self._cache) >= self._max_size:
                self._evict_expired()
                if len(self._cache) >= self._max_size:
                    # Remove oldest 10%
                    keys_to_remove = list(self._cache.keys())[: max(1, self._max_size // 10)]
                    for k in keys_to_remove:
                        del self._cache[k]

            expiry_time = self._clock() + ttl_seconds if ttl_seconds > 0 else None
            self._cache[key] = (value, expiry_time)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._cache.pop(key, None)

    async def clear_prefix(self, prefix: str) -> None:
        async with self._lock:
            keys_to_delete = [k for k in self._cache if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]

    async def get_ttl(self, key: str) -> Optional[int]:
        async with self._lock:
            if key not in self._cache:
                return None

            _, expiry_time = self._cache[key]
            if expiry_time is None:
                return -1  # No expiry

            remaining = int(expiry_time - self._clock())
            return max(0, remaining)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    async def close(self) -> None:
        await self.clear()

    def _evict_expired(self) -> None:
        """Remove all expired entries."""
        now = self._clock()
        keys_to_delete = [
            k for k, (_, exp) in self._cache.items() if exp is not None and now >= exp
        ]
        for key in keys_to_delete:
            del self._cache[key]


class CacheManager:
    """
    Cache manager with backend abstraction.

    Reads and writes never raise because of the backend: backend errors
    are logged and treated as a miss. Errors raised by a get_or_set
    factory do propagate, and nothing is stored for that key.
    """

    # Default TTL values by data type
    DEFAULT_TTLS = {
        "odds": 120,  # 2 minutes
        "edges": 900,  # 15 minutes
        "injuries": 300,  # 5 minutes
        "default": 300,
    }

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        key_prefix: str = "edgefinder",
        ttls: Optional[dict[str, int]] = None,
    ):
        self.backend = backend or InMemoryCache()
        self.key_prefix = key_prefix
        self.ttls = {**self.DEFAULT_TTLS, **(ttls or {})}
        self.hits = 0
        self.misses = 0
        self.logger = logger.bind(component="cache")

    @classmethod
    def create_memory_cache(cls, max_size: int = 1000) -> "CacheManager":
        """Create a cache manager with in-memory backend."""
        return cls(InMemoryCache(max_size=max_size))

    @classmethod
    def create_from_settings(cls, settings) -> "CacheManager":
        """Create cache manager based on application settings."""
        cache = settings.cache
        return cls(
            InMemoryCache(max_size=cache.max_size),
            ttls={
                "odds": cache.odds_ttl_seconds,
                "edges": cache.edges_ttl_seconds,
                "injuries": cache.injuries_ttl_seconds,
            },
        )

    def _make_key(self, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{self.key_prefix}:{key}"

    def _get_ttl(self, data_type: str, ttl_seconds: Optional[int] = None) -> int:
        """Get TTL for a data type."""
        if ttl_seconds is not None:
            return ttl_seconds
        return self.ttls.get(data_type, self.ttls["default"])

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        full_key = self._make_key(key)
        try:
            value = await self.backend.get(full_key)
        except Exception as e:
            self.logger.error(f"Cache get error for {key}: {e}")
            return None

        if value is not None:
            self.hits += 1
            self.logger.debug(f"Cache hit: {key}")
        else:
            self.misses += 1
            self.logger.debug(f"Cache miss: {key}")
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
    ) -> None:
        """Set a value in cache."""
        full_key = self._make_key(key)
        ttl = self._get_ttl(data_type, ttl_seconds)

        try:
            await self.backend.set(full_key, value, ttl)
            self.logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
        except Exception as e:
            self.logger.error(f"Cache set error for {key}: {e}")

    async def delete(self, key: str) -> None:
        """Delete a key from cache."""
        full_key = self._make_key(key)
        try:
            await self.backend.delete(full_key)
            self.logger.debug(f"Cache delete: {key}")
        except Exception as e:
            self.logger.error(f"Cache delete error for {key}: {e}")

    async def clear_prefix(self, prefix: str) -> None:
        """Clear all keys with given prefix."""
        full_prefix = self._make_key(prefix)
        try:
            await self.backend.clear_prefix(full_prefix)
            self.logger.info(f"Cache cleared for prefix: {prefix}")
        except Exception as e:
            self.logger.error(f"Cache clear error for prefix {prefix}: {e}")

    async def get_ttl(self, key: str) -> Optional[int]:
        """Remaining TTL in seconds, None if the key is absent."""
        return await self.backend.get_ttl(self._make_key(key))

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
        data_type: str = "default",
    ) -> Any:
        """
        Get value from cache or compute and store it.

        Args:
            key: Cache key
            factory: Async callable to compute value if not cached
            ttl_seconds: Optional TTL override
            data_type: Data type for default TTL lookup

        Returns:
            Cached or computed value

        Raises:
            Whatever the factory raises; there is no stale fallback
        """
        value = await self.get(key)
        if value is not None:
            return value

        value = await factory()

        await self.set(key, value, ttl_seconds, data_type)

        return value

    async def reset(self) -> None:
        """Drop every cached entry and the hit counters."""
        await self.backend.clear()
        self.hits = 0
        self.misses = 0
        self.logger.info("Cache reset")

    async def close(self) -> None:
        """Close the cache backend."""
        await self.backend.close()

    def stats(self) -> dict:
        return {
            "backend": type(self.backend).__name__,
            "hits": self.hits,
            "misses": self.misses,
        }
