import logging
from uuid import UUID

import redis.asyncio as redis

from ..errors import AppError

logger = logging.getLogger(__name__)


class CacheService:
    """Счётчики в Redis; ошибки Redis не роняют запрос"""

    def __init__(self, redis_url: str):
        self.redis = redis.from_url(redis_url, decode_responses=True)

    async def get_counter(self, key: str) -> int:
        """Текущее значение счётчика (0, если ключа нет)"""
        try:
            value = await self.redis.get(key)
            return int(value) if value else 0
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return 0

    async def incr_with_expiry(self, key: str, ttl: int) -> int:
        """Увеличить счётчик; TTL ставится при первом увеличении"""
        try:
            value = await self.redis.incr(key)
            if value == 1:
                await self.redis.expire(key, ttl)
            return value
        except Exception as e:
            logger.error(f"Cache incr error for key {key}: {e}")
            return 0

    async def close(self) -> None:
        await self.redis.aclose()


class ReviewRateLimiter:
    """Не больше `limit` отзывов от пользователя за окно `window_seconds`"""

    def __init__(self, cache: CacheService, limit: int, window_seconds: int):
        self.cache = cache
        self.limit = limit
        self.window_seconds = window_seconds

    @staticmethod
    def _key(user_id: UUID) -> str:
        return f"reviews:ratelimit:{user_id}"

    async def check(self, user_id: UUID) -> None:
        current = await self.cache.get_counter(self._key(user_id))
        if current >= self.limit:
            logger.warning(f"Review rate limit exceeded for user {user_id}: {current}/{self.limit}")
            raise AppError(
                f"Review rate limit exceeded. You can create up to {self.limit} reviews per day.",
                429,
                "RATE_LIMIT_EXCEEDED",
            )

    async def quota(self, user_id: UUID) -> dict:
        """Остаток лимита отзывов пользователя в текущем окне"""
        used = await self.cache.get_counter(self._key(user_id))
        return {
            "limit": self.limit,
            "used": used,
            "remaining": max(0, self.limit - used),
            "reset_in": self.window_seconds,
        }

    async def hit(self, user_id: UUID) -> None:
        await self.cache.incr_with_expiry(self._key(user_id), self.window_seconds)

    async def close(self) -> None:
        await self.cache.close()
