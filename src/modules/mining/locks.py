"""
Per-player serialization for mutating mining and energy operations.

Two providers:
- ``LocalPlayerLockProvider``: one ``asyncio.Lock`` per busy player, for a single
  process (default, and what tests use)
- ``RedisPlayerLockProvider``: ``RedisService.acquire_lock`` keyed by player,
  for several API processes sharing one database

Either way the database row lock (``SELECT ... FOR UPDATE``) and the partial
unique index on ``accrual_sessions`` still hold; the provider only keeps
same-player requests from interleaving their read-modify-write cycles.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from src.core.logging.logger import get_logger
from src.core.redis.service import RedisService

logger = get_logger(__name__)


class PlayerLockProvider(ABC):
    """Async context manager factory keyed by player id."""

    @abstractmethod
    def lock(self, player_id: int) -> Any:
        """Return an async context manager holding the player's lock."""


class LocalPlayerLockProvider(PlayerLockProvider):
    """
    One ``asyncio.Lock`` per player, kept only while someone holds or waits
    for it.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    @asynccontextmanager
    async def lock(self, player_id: int) -> AsyncIterator[None]:
        player_lock = self._locks.setdefault(player_id, asyncio.Lock())
        self._users[player_id] = self._users.get(player_id, 0) + 1
        try:
            async with player_lock:
                yield
        finally:
            self._users[player_id] -= 1
            if not self._users[player_id]:
                del self._users[player_id]
                del self._locks[player_id]

    @property
    def tracked_players(self) -> int:
        return len(self._locks)


class RedisPlayerLockProvider(PlayerLockProvider):
    """
    Distributed lock under ``{prefix}{player_id}``.

    Raises ``TimeoutError`` when the lock is not acquired within
    ``wait_timeout`` seconds.
    """

    def __init__(
        self,
        prefix: str = "mining:lock:",
        timeout: Optional[int] = None,
        wait_timeout: Optional[float] = None,
    ) -> None:
        self._prefix = prefix
        self._timeout = timeout
        self._wait_timeout = wait_timeout

    @asynccontextmanager
    async def lock(self, player_id: int) -> AsyncIterator[None]:
        async with RedisService.acquire_lock(
            f"{self._prefix}{player_id}",
            timeout=self._timeout,
            wait_timeout=self._wait_timeout,
        ):
            yield


def build_lock_provider(config_manager: Any) -> PlayerLockProvider:
    """Provider selected by ``locks.mode`` (``local`` or ``redis``)."""
    mode = str(config_manager.get("locks.mode", "local")).lower()
    if mode == "redis":
        logger.info("Using Redis player locks")
        return RedisPlayerLockProvider(
            prefix=str(config_manager.get("locks.redis.key_prefix", "mining:lock:")),
        )
    if mode != "local":
        logger.warning(
            f"Unknown lock mode '{mode}', falling back to local locks",
            extra={"lock_mode": mode},
        )
    return LocalPlayerLockProvider()
