"""Redis connection and utilities"""
import logging
from typing import Any, Optional
import redis.asyncio as aioredis
from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper"""

    def __init__(self):
        self.redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self.redis is not None

    async def connect(self, url: Optional[str] = None):
        """Connect to Redis"""
        url = url or settings.REDIS_URL
        if not url:
            logger.info("REDIS_URL not set, skipping Redis connection")
            return
        self.redis = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True
        )

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> Any:
        """Run a Lua script atomically"""
        if not self.redis:
            raise RuntimeError("Redis is not connected")
        return await self.redis.eval(script, numkeys, *keys_and_args)

    async def delete(self, key: str):
        """Delete key from Redis"""
        if not self.redis:
            return
        await self.redis.delete(key)


redis_client = RedisClient()
