"""Redis client with connection pooling and circuit breaker pattern.

Features:
- Connection pooling via redis-py
- Circuit breaker for fault tolerance
- Graceful degradation: every operation returns None when Redis is unavailable
- Connection retry with exponential backoff on startup
"""

import asyncio
import time
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import AuthenticationError, RedisError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from insight_studio.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from insight_studio.core.config import get_settings
from insight_studio.core.logging import get_logger, redis_logger

logger = get_logger(__name__)


class RedisManager:
    """Manages the Redis connection used by the insight store."""

    def __init__(self) -> None:
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._circuit_breaker: CircuitBreaker | None = None
        self._available = False

    @property
    def available(self) -> bool:
        """Whether Redis is connected and usable."""
        return self._available and self._client is not None

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        return self._circuit_breaker

    async def init_redis(self) -> bool:
        """Connect to Redis.

        Returns True if Redis is available. Redis is optional: without it
        insight records live in process memory.
        """
        settings = get_settings()

        if not settings.redis_url:
            logger.info("Redis URL not configured, insight records kept in memory")
            self._available = False
            return False

        redis_url = str(settings.redis_url)
        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.redis_circuit_failure_threshold,
                recovery_timeout=settings.redis_circuit_recovery_timeout,
            ),
            name="redis",
        )

        try:
            self._pool = ConnectionPool.from_url(
                redis_url,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=settings.redis_connect_timeout,
                socket_timeout=settings.redis_socket_timeout,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._ping_with_retry()
            self._available = True
            redis_logger.connection_success()
            return True
        except Exception as e:
            redis_logger.connection_error(e, redis_url)
            self._available = False
            return False

    async def _ping_with_retry(self, max_retries: int = 3, base_delay: float = 1.0) -> None:
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                if self._client:
                    await self._client.ping()  # type: ignore[misc]
                    return
            except (RedisConnectionError, RedisTimeoutError) as e:
                last_error = e
                if attempt < max_retries - 1:
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        f"Redis connection attempt {attempt + 1} failed, retrying in {delay}s",
                        extra={"attempt": attempt + 1, "delay_seconds": delay, "error": str(e)},
                    )
                    await asyncio.sleep(delay)
        if last_error:
            raise last_error

    async def close(self) -> None:
        """Close Redis connections."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
        self._available = False
        logger.info("Redis connections closed")

    async def execute(self, operation: str, *args: Any, **kwargs: Any) -> Any | None:
        """Run a Redis command behind the circuit breaker.

        Returns None if Redis is unavailable or the command fails.
        """
        if not self._client or not self._circuit_breaker:
            redis_logger.graceful_fallback(operation, "Redis not initialized")
            return None

        if not await self._circuit_breaker.can_execute():
            redis_logger.graceful_fallback(operation, "Circuit breaker open")
            return None

        start_time = time.monotonic()
        key = str(args[0]) if args else ""

        try:
            result = await getattr(self._client, operation)(*args, **kwargs)
        except RedisTimeoutError:
            redis_logger.timeout(operation, key, get_settings().redis_socket_timeout)
        except (AuthenticationError, RedisConnectionError) as e:
            redis_logger.connection_error(e, str(get_settings().redis_url))
        except RedisError as e:
            logger.error(
                f"Redis error during {operation}",
                extra={
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
        else:
            redis_logger.operation(
                operation, key, (time.monotonic() - start_time) * 1000, success=True
            )
            await self._circuit_breaker.record_success()
            return result

        redis_logger.operation(
            operation, key, (time.monotonic() - start_time) * 1000, success=False
        )
        await self._circuit_breaker.record_failure()
        return None

    async def get(self, key: str) -> bytes | None:
        return await self.execute("get", key)

    async def set(self, key: str, value: str | bytes, ex: int | None = None) -> bool:
        """Set a value; False when Redis could not take the write."""
        kwargs: dict[str, Any] = {}
        if ex is not None:
            kwargs["ex"] = ex
        result = await self.execute("set", key, value, **kwargs)
        return result is not None

    async def delete(self, *keys: str) -> int | None:
        return await self.execute("delete", *keys)

    async def check_health(self) -> bool:
        """Ping Redis."""
        if not self._available:
            return False
        result = await self.execute("ping")
        return result is True or result == b"PONG"


redis_manager = RedisManager()


async def get_redis() -> RedisManager:
    """Dependency returning the process-wide Redis manager."""
    return redis_manager
