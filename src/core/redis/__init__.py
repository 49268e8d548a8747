"""Redis infrastructure: shared async client and distributed lock."""

from src.core.redis.service import RedisNotInitializedError, RedisService

__all__ = ["RedisService", "RedisNotInitializedError"]
