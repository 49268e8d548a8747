"""
Redis Service - distributed locking

Purpose
-------
Owns the process-wide async Redis client and exposes a distributed lock used
to serialize mutations of a single player's mining state across processes.

Design Notes
------------
- Lock acquisition uses ``SET key token NX EX timeout`` with a random token.
- Release goes through a Lua compare-and-delete so a lock that expired and
  was re-acquired by another holder is never deleted by the old holder.
- An expired lock frees itself; a crashed holder never wedges a player.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from src.core.config.config import Config
from src.core.config.config_manager import ConfigManager
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisNotInitializedError(RuntimeError):
    """Raised when the Redis client is used before ``initialize()``."""


class RedisService:
    """Singleton async Redis client with a SET NX distributed lock."""

    _client: Optional[AsyncRedis] = None

    # Compare token + delete, atomically
    _LUA_UNLOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    @classmethod
    async def initialize(cls, url: Optional[str] = None, client: Optional[AsyncRedis] = None) -> None:
        """
        Connect and ping. Idempotent.

        ``client`` lets callers hand in a preconfigured client (tests).
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        if client is None:
            client = AsyncRedis.from_url(
                url or Config.REDIS_URL,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                decode_responses=True,
            )

        try:
            await client.ping()
        except (RedisConnectionError, RedisError) as exc:
            logger.error(
                "RedisService initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            raise RuntimeError(f"Redis initialization failed: {exc}") from exc

        cls._client = client
        logger.info("RedisService initialized")

    @classmethod
    async def shutdown(cls) -> None:
        if cls._client is None:
            return
        try:
            await cls._client.aclose()
        finally:
            cls._client = None
            logger.info("RedisService shutdown complete")

    @classmethod
    def client(cls) -> AsyncRedis:
        if cls._client is None:
            raise RedisNotInitializedError("RedisService must be initialized before use")
        return cls._client

    @classmethod
    @asynccontextmanager
    async def acquire_lock(
        cls,
        key: str,
        timeout: Optional[int] = None,
        wait_timeout: Optional[float] = None,
        retry_interval: Optional[float] = None,
    ) -> AsyncGenerator[None, None]:
        """
        Acquire a distributed lock using Redis SET NX with a unique token.

        Parameters
        ----------
        key : str
            Lock identifier (e.g., "mining:lock:{player_id}").
        timeout : Optional[int]
            Lock expiration in seconds.
        wait_timeout : Optional[float]
            Maximum time to wait for acquisition.
        retry_interval : Optional[float]
            Sleep between acquisition attempts.

        Raises
        ------
        TimeoutError
            If the lock cannot be acquired within ``wait_timeout``.

        Example
        -------
        >>> async with RedisService.acquire_lock(f"mining:lock:{player_id}"):
        >>>     await coordinator.stop_session(player_id)
        """
        client = cls.client()

        if timeout is None:
            timeout = int(ConfigManager.get("locks.redis.timeout_seconds", 10))
        if wait_timeout is None:
            wait_timeout = float(ConfigManager.get("locks.redis.wait_timeout_seconds", 5))
        if retry_interval is None:
            retry_interval = float(ConfigManager.get("locks.redis.retry_interval_seconds", 0.05))

        token = uuid.uuid4().hex
        deadline = time.monotonic() + max(0.0, wait_timeout)
        acquired = False
        start = time.monotonic()

        try:
            while True:
                try:
                    acquired = bool(await client.set(name=key, value=token, nx=True, ex=timeout))
                except (RedisConnectionError, RedisError) as exc:
                    logger.error(
                        "Redis lock acquisition error",
                        extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
                        exc_info=True,
                    )

                if acquired:
                    logger.debug(
                        "Redis lock acquired",
                        extra={
                            "lock_key": key,
                            "timeout_seconds": timeout,
                            "wait_ms": round((time.monotonic() - start) * 1000, 2),
                        },
                    )
                    break

                if time.monotonic() >= deadline:
                    logger.warning(
                        "Failed to acquire Redis lock within timeout",
                        extra={"lock_key": key, "wait_timeout_seconds": wait_timeout},
                    )
                    raise TimeoutError(f"Failed to acquire Redis lock '{key}' within {wait_timeout}s")

                await asyncio.sleep(retry_interval)

            yield

        finally:
            if acquired:
                try:
                    released = await client.eval(cls._LUA_UNLOCK_SCRIPT, 1, key, token)
                except (RedisConnectionError, RedisError) as exc:
                    logger.warning(
                        "Failed to release Redis lock (will expire automatically)",
                        extra={"lock_key": key, "error": str(exc)},
                        exc_info=True,
                    )
                else:
                    if not released:
                        logger.warning("Redis lock already expired or stolen", extra={"lock_key": key})
