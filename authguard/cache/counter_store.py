"""
Counter Store with Redis Support

Keyed integer counters with TTL for the inline auth path (rate limits,
login attempts) plus small JSON records (lockouts).

Backends:
- RedisCounterBackend: shared across server instances (redis.asyncio)
- InMemoryCounterBackend: single process, used in tests and local dev

Every CounterStore call carries a short timeout. When the backend is down
or slow, the store fails open: it logs a DEGRADED warning and returns a
default that reads as "no prior attempts" instead of raising into the
request that is being authenticated.
"""
import asyncio
import json
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from ..exceptions import BackendUnavailableError
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

# Redis TTL sentinels
TTL_MISSING = -2
TTL_NO_EXPIRY = -1


class CounterBackend(ABC):
    """Abstract base class for counter storage backends."""

    name = "counter-backend"

    @abstractmethod
    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        """
        Atomically increment a counter, creating it with a TTL when absent.

        A key that has expired is recreated, so the first increment after
        expiry returns 1 with a fresh TTL.

        Returns:
            The counter value after the increment
        """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Raw value stored at key, or None"""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store a raw value, optionally with a TTL"""

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining seconds, TTL_MISSING or TTL_NO_EXPIRY"""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed"""

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity"""


class InMemoryCounterBackend(CounterBackend):
    """In-memory counter storage (single process only)."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        # key -> (value, expires_at on self._clock or None)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = ("1", self._clock() + ttl_seconds)
                return 1
            value, expires_at = entry
            new_value = int(value) + 1
            self._data[key] = (str(new_value), expires_at)
            return new_value

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds else None
            self._data[key] = (value, expires_at)

    async def ttl(self, key: str) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return TTL_MISSING
            _, expires_at = entry
            if expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, math.ceil(expires_at - self._clock()))

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    async def ping(self) -> bool:
        return True


class RedisCounterBackend(CounterBackend):
    """Redis-backed counter storage (distributed)."""

    name = "redis"

    def __init__(self, redis_url: Optional[str] = None, client: Any = None):
        self.redis_url = redis_url
        self._client = client

    def _get_client(self):
        """Lazy-load Redis client."""
        if self._client is None:
            import redis.asyncio as redis
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._client

    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        try:
            client = self._get_client()
            # SET NX creates the key with its TTL; INCR keeps an existing TTL
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=ttl_seconds, nx=True)
                pipe.incr(key)
                results = await pipe.execute()
            return int(results[1])
        except Exception as e:
            raise BackendUnavailableError(self.name, "INCR", e) from e

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._get_client().get(key)
        except Exception as e:
            raise BackendUnavailableError(self.name, "GET", e) from e

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            await self._get_client().set(key, value, ex=ttl_seconds)
        except Exception as e:
            raise BackendUnavailableError(self.name, "SET", e) from e

    async def ttl(self, key: str) -> int:
        try:
            return int(await self._get_client().ttl(key))
        except Exception as e:
            raise BackendUnavailableError(self.name, "TTL", e) from e

    async def delete(self, *keys: str) -> int:
        try:
            return int(await self._get_client().delete(*keys))
        except Exception as e:
            raise BackendUnavailableError(self.name, "DEL", e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except Exception as e:
            raise BackendUnavailableError(self.name, "PING", e) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class CounterStore:
    """
    Fail-open counter store used by the rate limiter, the login attempt
    tracker and the lockout manager.

    Keys are namespaced as ``{prefix}:{key}``.
    """

    def __init__(
        self,
        backend: Optional[CounterBackend] = None,
        key_prefix: str = "authguard",
        timeout_seconds: float = 0.1
    ):
        self.backend = backend or InMemoryCounterBackend()
        self.key_prefix = key_prefix
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_url(cls, redis_url: Optional[str], **kwargs) -> "CounterStore":
        """Redis when a URL is configured, otherwise the in-memory backend."""
        if redis_url:
            logger.info(f"[CounterStore] Using Redis backend ({redis_url[:30]}...)")
            return cls(RedisCounterBackend(redis_url), **kwargs)
        logger.info("[CounterStore] Using in-memory backend")
        return cls(InMemoryCounterBackend(), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def _call(self, operation: str, key: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise BackendUnavailableError(self.backend.name, operation, e) from e

    def _degraded(self, operation: str, key: str, error: Exception) -> None:
        logger.warning(
            f"[CounterStore] DEGRADED {operation} failed for {key}, failing open: {error}",
            backend=self.backend.name,
            operation=operation,
        )

    async def increment(self, key: str, ttl_seconds: int, default: int = 0) -> int:
        """
        Atomically increment a counter; the first increment sets the expiry.

        Args:
            key: Counter key (without prefix)
            ttl_seconds: Window length applied when the counter is created
            default: Returned when the backend is unavailable

        Returns:
            New counter value, or ``default`` in degraded mode
        """
        full_key = self._key(key)
        try:
            return await self._call("INCR", full_key, self.backend.incr_with_ttl(full_key, ttl_seconds))
        except BackendUnavailableError as e:
            self._degraded("INCR", full_key, e)
            return default

    async def get(self, key: str) -> int:
        """Current counter value (0 when absent or unavailable)"""
        full_key = self._key(key)
        try:
            raw = await self._call("GET", full_key, self.backend.get(full_key))
        except BackendUnavailableError as e:
            self._degraded("GET", full_key, e)
            return 0
        if raw is None:
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f"[CounterStore] Non-integer value at {full_key}: {raw!r}")
            return 0

    async def reset(self, key: str) -> bool:
        """Delete a counter. Returns False if the backend could not be reached."""
        full_key = self._key(key)
        try:
            await self._call("DEL", full_key, self.backend.delete(full_key))
            return True
        except BackendUnavailableError as e:
            self._degraded("DEL", full_key, e)
            return False

    async def ttl_seconds(self, key: str) -> int:
        """Remaining TTL in seconds; TTL_MISSING when absent or unavailable"""
        full_key = self._key(key)
        try:
            return await self._call("TTL", full_key, self.backend.ttl(full_key))
        except BackendUnavailableError as e:
            self._degraded("TTL", full_key, e)
            return TTL_MISSING

    async def set_json(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        """Store a JSON record with a TTL. Returns False in degraded mode."""
        full_key = self._key(key)
        payload = json.dumps(value, default=str)
        try:
            await self._call("SET", full_key, self.backend.set(full_key, payload, ttl_seconds))
            return True
        except BackendUnavailableError as e:
            self._degraded("SET", full_key, e)
            return False

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Read a JSON record (None when absent, corrupt or unavailable)"""
        full_key = self._key(key)
        try:
            raw = await self._call("GET", full_key, self.backend.get(full_key))
        except BackendUnavailableError as e:
            self._degraded("GET", full_key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"[CounterStore] Corrupt JSON record at {full_key}")
            return None

    async def health_check(self) -> Dict[str, Any]:
        """Ping the backend and report healthy / unhealthy with latency."""
        started = time.perf_counter()
        errors = []
        healthy = False
        try:
            healthy = await self._call("PING", "-", self.backend.ping())
        except BackendUnavailableError as e:
            errors.append(str(e))

        return {
            "status": "healthy" if healthy else "unhealthy",
            "backend": self.backend.name,
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "errors": errors,
        }

    async def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if close is not None:
            await close()
