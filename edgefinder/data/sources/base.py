"""
Shared plumbing for the upstream feed clients.

Every client gets:
- a health record updated on each fetch
- retries with exponential backoff, for errors marked retryable only
- a circuit breaker that stops calling a feed after repeated failures
- optional caching through an injected CacheManager
"""
import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


class DataSourceStatus(str, Enum):
    """Health status of a data source."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


@dataclass
class DataSourceHealth:
    """Last known health of one feed."""

    source_name: str
    status: DataSourceStatus
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_name,
            "status": self.status.value,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
            "consecutive_failures": self.consecutive_failures,
            "error": self.error_message,
            "latency_ms": self.latency_ms,
        }


@dataclass
class RetryConfig:
    """Backoff schedule for retryable feed errors."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.initial_delay_seconds * self.exponential_base ** (attempt - 1)
        delay = min(delay, self.max_delay_seconds)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout_seconds: int = 60
    half_open_max_calls: int = 3


class CircuitBreaker:
    """
    Closed -> open after ``failure_threshold`` failures in a row.

    Once ``recovery_timeout_seconds`` have passed, calls are let through
    again (half-open); ``half_open_max_calls`` successes close it, any
    failure reopens it.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self.state = self.CLOSED
        self.failures = 0
        self.opened_at: Optional[datetime] = None
        self._half_open_successes = 0

    def allows_call(self, now: Optional[datetime] = None) -> bool:
        if self.state != self.OPEN:
            return True
        now = now or datetime.now()
        if self.opened_at and (now - self.opened_at).total_seconds() >= self.config.recovery_timeout_seconds:
            self.state = self.HALF_OPEN
            self._half_open_successes = 0
            return True
        return False

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes < self.config.half_open_max_calls:
                return
        self.state = self.CLOSED
        self.failures = 0

    def record_failure(self, now: Optional[datetime] = None) -> bool:
        """Count a failure; True when this failure opened the breaker."""
        self.failures += 1
        was_open = self.state == self.OPEN
        if self.state == self.HALF_OPEN or self.failures >= self.config.failure_threshold:
            self.state = self.OPEN
            self.opened_at = now or datetime.now()
        return self.state == self.OPEN and not was_open

    def reset(self) -> None:
        self.state = self.CLOSED
        self.failures = 0
        self.opened_at = None
        self._half_open_successes = 0


class DataSourceError(Exception):
    """Base exception for data source errors."""

    def __init__(
        self,
        message: str,
        source_name: str,
        original_error: Optional[Exception] = None,
        retry_allowed: bool = True,
    ):
        super().__init__(message)
        self.source_name = source_name
        self.original_error = original_error
        self.retry_allowed = retry_allowed


class UpstreamUnavailableError(DataSourceError):
    """Feed unreachable, timed out or answered with a server error."""

    def __init__(
        self,
        source_name: str,
        message: str = "Upstream unavailable",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, source_name, original_error=original_error, retry_allowed=True)


class RateLimitError(DataSourceError):
    """Quota exhausted; retrying immediately would only burn more of it."""

    def __init__(self, source_name: str, retry_after_seconds: Optional[int] = None):
        super().__init__(f"Rate limit exceeded for {source_name}", source_name, retry_allowed=False)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(DataSourceError):
    """Rejected credentials."""

    def __init__(self, source_name: str, message: str = "Authentication failed"):
        super().__init__(message, source_name, retry_allowed=False)


class BaseDataSource(ABC, Generic[T]):
    """
    Base class for feed clients.

    Subclasses implement ``_fetch_impl`` (a single attempt) and
    ``health_check``; callers go through ``fetch``. Only DataSourceError
    subclasses with ``retry_allowed`` are retried. Anything else is a bug
    in the client and propagates on the first attempt.
    """

    def __init__(
        self,
        source_name: str,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
        fetch_timeout_seconds: Optional[float] = None,
    ):
        self.source_name = source_name
        self.enabled = enabled
        self.retry_config = retry_config or RetryConfig()
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.breaker = CircuitBreaker(circuit_breaker_config or CircuitBreakerConfig())
        self._health = DataSourceHealth(
            source_name=source_name,
            status=DataSourceStatus.HEALTHY if enabled else DataSourceStatus.DISABLED,
        )
        self.logger = logger.bind(source=source_name)

    @property
    def is_available(self) -> bool:
        return self.enabled and self.breaker.allows_call()

    @abstractmethod
    async def _fetch_impl(self, *args, **kwargs) -> T:
        """One fetch attempt, without retries."""

    @abstractmethod
    async def health_check(self) -> DataSourceHealth:
        """Lightweight reachability check of the feed."""

    async def fetch(self, *args, **kwargs) -> T:
        """
        Fetch with retries, guarded by the circuit breaker.

        With ``fetch_timeout_seconds`` set, attempts and backoff together
        share that one budget; a retry that would not fit is not started.

        Raises:
            UpstreamUnavailableError: The source is disabled, its breaker is
                open, or the fetch budget ran out
            DataSourceError: The last error once retries are exhausted, or
                the first non-retryable one
        """
        if not self.is_available:
            raise UpstreamUnavailableError(
                self.source_name, f"Data source {self.source_name} is not available"
            )

        loop = asyncio.get_running_loop()
        deadline = None
        if self.fetch_timeout_seconds is not None:
            deadline = loop.time() + self.fetch_timeout_seconds

        started = datetime.now()
        attempts = self.retry_config.max_attempts
        attempt = 1
        while True:
            remaining = None if deadline is None else deadline - loop.time()
            try:
                self.logger.debug(f"Fetch attempt {attempt}/{attempts}")
                result = await asyncio.wait_for(self._fetch_impl(*args, **kwargs), remaining)
            except asyncio.TimeoutError as e:
                message = f"Fetch abandoned after {self.fetch_timeout_seconds}s"
                self.logger.warning(message)
                self._record_failure(message)
                raise UpstreamUnavailableError(self.source_name, message, original_error=e)
            except DataSourceError as e:
                self.logger.warning(f"Fetch error on attempt {attempt}: {e}")
                if not e.retry_allowed or attempt >= attempts:
                    self._record_failure(str(e))
                    raise
                delay = self._calculate_delay(attempt)
                if deadline is not None and loop.time() + delay >= deadline:
                    self.logger.warning("No fetch budget left for another attempt")
                    self._record_failure(str(e))
                    raise
                self.logger.info(f"Retrying in {delay:.2f} seconds...")
                await asyncio.sleep(delay)
                attempt += 1
                continue

            self._record_success((datetime.now() - started).total_seconds() * 1000)
            return result

    def _calculate_delay(self, attempt: int) -> float:
        return self.retry_config.delay_for(attempt)

    def _record_success(self, latency_ms: float) -> None:
        was_half_open = self.breaker.state == CircuitBreaker.HALF_OPEN
        self.breaker.record_success()
        if was_half_open and self.breaker.state == CircuitBreaker.CLOSED:
            self.logger.info("Circuit breaker closed after successful recovery")

        health = self._health
        health.last_success = datetime.now()
        health.latency_ms = latency_ms
        health.consecutive_failures = 0
        health.error_message = None
        health.status = DataSourceStatus.HEALTHY

    def _record_failure(self, error_message: str) -> None:
        health = self._health
        health.last_failure = datetime.now()
        health.consecutive_failures += 1
        health.error_message = error_message

        if self.breaker.record_failure():
            self.logger.error(f"Circuit breaker opened after {self.breaker.failures} failures")
        if self.breaker.state == CircuitBreaker.OPEN:
            health.status = DataSourceStatus.UNHEALTHY
        elif health.consecutive_failures >= 2:
            health.status = DataSourceStatus.DEGRADED

    def get_health(self) -> DataSourceHealth:
        return self._health

    def reset_circuit_breaker(self) -> None:
        """Close the breaker and clear the failure streak."""
        self.breaker.reset()
        self._health.status = DataSourceStatus.HEALTHY
        self._health.consecutive_failures = 0
        self._health.error_message = None
        self.logger.info("Circuit breaker manually reset")


class CachedDataSource(BaseDataSource[T]):
    """
    Data source whose results go through an injected CacheManager.

    A cache hit never touches the network. On a miss the fetch error
    propagates and nothing is cached.
    """

    def __init__(
        self,
        source_name: str,
        cache_data_type: str = "default",
        cache_prefix: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(source_name, **kwargs)
        self.cache_data_type = cache_data_type
        self.cache_prefix = cache_prefix or source_name
        self._cache = None

    def set_cache(self, cache) -> None:
        self._cache = cache

    def _get_cache_key(self, *args, **kwargs) -> str:
        parts = [str(a) for a in args]
        parts += [f"{k}={v}" for k, v in sorted(kwargs.items())]
        return ":".join([self.cache_prefix, *parts])

    async def fetch_cached(self, *args, use_cache: bool = True, **kwargs) -> T:
        """
        Fetch through the cache.

        Args:
            *args: Arguments for fetch (also form the cache key)
            use_cache: False forces a fetch and skips the cache entirely
            **kwargs: Keyword arguments for fetch
        """
        if not use_cache or self._cache is None:
            return await self.fetch(*args, **kwargs)

        async def _load():
            return await self.fetch(*args, **kwargs)

        return await self._cache.get_or_set(
            self._get_cache_key(*args, **kwargs),
            _load,
            data_type=self.cache_data_type,
        )
