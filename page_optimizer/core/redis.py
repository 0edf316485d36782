"""Optional Redis backing for the request guard.

When ``REDIS_URL`` is unset or the server cannot be reached the manager stays
unavailable and every call returns None, so the rate limiter and the
idempotency store keep their state in process instead. Calls go through a
circuit breaker; a failing server degrades to the same None results.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from page_optimizer.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from page_optimizer.core.config import get_settings
from page_optimizer.core.logging import get_logger, redis_logger

logger = get_logger(__name__)

CONNECT_ATTEMPTS = 3


class RedisManager:
    """Pooled Redis client exposing the few commands the guard needs."""

    def __init__(self) -> None:
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._circuit_breaker: CircuitBreaker | None = None
        self._available = False

    @property
    def available(self) -> bool:
        return self._available and self._client is not None

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        return self._circuit_breaker

    async def init_redis(self) -> bool:
        """Connect if configured. Returns whether Redis is usable."""
        settings = get_settings()
        if not settings.redis_url:
            logger.info("REDIS_URL not set, request guard keeps state in process")
            return False

        redis_url = str(settings.redis_url)
        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.redis_circuit_failure_threshold,
                recovery_timeout=settings.redis_circuit_recovery_timeout,
            ),
            name="redis",
        )
        self._pool = ConnectionPool.from_url(
            redis_url,
            max_connections=settings.redis_pool_size,
            socket_connect_timeout=settings.redis_connect_timeout,
            socket_timeout=settings.redis_socket_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            health_check_interval=settings.redis_health_check_interval,
        )
        self._client = Redis(connection_pool=self._pool)

        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                await self._client.ping()  # type: ignore[misc]
                break
            except (RedisError, OSError) as e:
                if attempt == CONNECT_ATTEMPTS:
                    redis_logger.connection_error(e, redis_url)
                    return False
                delay = 2 ** (attempt - 1)
                logger.warning(
                    "Redis ping failed, retrying",
                    extra={"attempt": attempt, "delay_seconds": delay, "error": str(e)},
                )
                await asyncio.sleep(delay)

        self._available = True
        redis_logger.connection_success()
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._available = False
        logger.info("Redis connections closed")

    async def _run(
        self, command: str, key: str, call: Callable[[Redis], Awaitable[Any]]
    ) -> Any | None:
        if self._client is None or self._circuit_breaker is None:
            redis_logger.graceful_fallback(command, "not connected")
            return None
        if not await self._circuit_breaker.can_execute():
            redis_logger.graceful_fallback(command, "circuit open")
            return None

        start_time = time.monotonic()
        try:
            result = await call(self._client)
        except RedisTimeoutError:
            redis_logger.timeout(command, key, get_settings().redis_socket_timeout)
            await self._circuit_breaker.record_failure()
            return None
        except (RedisError, OSError) as e:
            redis_logger.command_failed(command, key, e)
            await self._circuit_breaker.record_failure()
            return None

        redis_logger.operation(command, key, (time.monotonic() - start_time) * 1000)
        await self._circuit_breaker.record_success()
        return result

    async def get(self, key: str) -> bytes | None:
        return await self._run("get", key, lambda r: r.get(key))

    async def set(self, key: str, value: str, ex: int | None = None) -> bool | None:
        return await self._run("set", key, lambda r: r.set(key, value, ex=ex))

    async def incr(self, key: str) -> int | None:
        return await self._run("incr", key, lambda r: r.incr(key))

    async def expire(self, key: str, seconds: int) -> bool | None:
        return await self._run("expire", key, lambda r: r.expire(key, seconds))

    async def check_health(self) -> bool:
        if not self._available:
            return False
        result = await self._run("ping", "", lambda r: r.ping())
        return result is True or result == b"PONG"


redis_manager = RedisManager()
