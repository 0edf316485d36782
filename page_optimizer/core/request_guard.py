"""Rate limiting and idempotency for the optimize endpoint.

Both components prefer Redis when it is available and fall back to
in-process state otherwise. In-process state is bounded: rate-limit windows
expire on their own and the idempotency store evicts expired entries first,
then the oldest, once it reaches ``max_entries``.
"""

import time
from collections import OrderedDict
from collections.abc import Callable

from page_optimizer.core.config import get_settings
from page_optimizer.core.logging import get_logger
from page_optimizer.core.redis import RedisManager, redis_manager

logger = get_logger(__name__)


class RateLimiter:
    """Fixed-window request counter keyed by client."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        redis: RedisManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window = window_seconds
        self._redis = redis
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    async def check(self, key: str) -> bool:
        """Count one request for ``key``; False when the limit is exceeded."""
        if self._redis is not None and self._redis.available:
            redis_key = f"ratelimit:{key}"
            count = await self._redis.incr(redis_key)
            if count is not None:
                if count == 1:
                    await self._redis.expire(redis_key, self._window)
                return count <= self._limit

        now = self._clock()
        self._prune(now)
        window_start, count = self._windows.get(key, (now, 0))
        count += 1
        self._windows[key] = (window_start, count)
        return count <= self._limit

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, (start, _) in self._windows.items()
            if now - start >= self._window
        ]
        for key in expired:
            del self._windows[key]


class IdempotencyStore:
    """Maps an idempotency key to the job it created, for a bounded time."""

    def __init__(
        self,
        ttl_seconds: int,
        max_entries: int,
        redis: RedisManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._redis = redis
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> str | None:
        """Return the job id stored for ``key`` if it has not expired."""
        if self._redis is not None and self._redis.available:
            value = await self._redis.get(f"idempotency:{key}")
            if value is not None:
                return value.decode() if isinstance(value, bytes) else str(value)

        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, job_id = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return job_id

    async def put(self, key: str, job_id: str) -> None:
        if self._redis is not None and self._redis.available:
            await self._redis.set(f"idempotency:{key}", job_id, ex=self._ttl)

        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = (now, job_id)
        if len(self._entries) > self._max_entries:
            self._evict(now)

    def _evict(self, now: float) -> None:
        expired = [
            key
            for key, (stored_at, _) in self._entries.items()
            if now - stored_at >= self._ttl
        ]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted idempotency entry", extra={"key": evicted})


def build_idempotency_key(*parts: str | None) -> str:
    """Composite key from request fields, ignoring empty parts."""
    return "|".join(part.strip().lower() for part in parts if part and part.strip())


class RequestGuard:
    """Rate limiter and idempotency store owned by the optimize endpoint."""

    def __init__(self, rate_limiter: RateLimiter, idempotency: IdempotencyStore) -> None:
        self.rate_limiter = rate_limiter
        self.idempotency = idempotency


_guard: RequestGuard | None = None


def get_request_guard() -> RequestGuard:
    """Dependency returning the process-wide request guard."""
    global _guard
    if _guard is None:
        settings = get_settings()
        _guard = RequestGuard(
            rate_limiter=RateLimiter(
                limit=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
                redis=redis_manager,
            ),
            idempotency=IdempotencyStore(
                ttl_seconds=settings.idempotency_ttl_seconds,
                max_entries=settings.idempotency_max_entries,
                redis=redis_manager,
            ),
        )
    return _guard
