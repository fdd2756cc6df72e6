"""
Redis connection for shared marketplace state.

Used by the Redis preference backend so that several API workers agree on
the selected execution mode.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Thin async Redis wrapper.

    Usage:
        client = RedisClient("redis://localhost:6379/0")
        await client.connect()

        await client.set("marketplace:contract_mode", "fhe")
        value = await client.get("marketplace:contract_mode")
    """

    def __init__(self, redis_url: str, redis: Optional[aioredis.Redis] = None):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            redis: Already created connection (tests, shared pools)
        """
        self.redis_url = redis_url
        self._redis = redis
        self._connected = redis is not None

    async def connect(self):
        """Connect to Redis"""
        if self._connected:
            return

        logger.info(f"Connecting to Redis: {self.redis_url}")
        self._redis = aioredis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._connected = True

    async def disconnect(self):
        """Disconnect from Redis"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._connected = False
            logger.info("Redis client disconnected")

    @property
    def redis(self) -> aioredis.Redis:
        """Get underlying Redis connection"""
        if not self._connected or not self._redis:
            raise RuntimeError("Redis client not connected. Call await client.connect() first.")
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """
        Set key-value pair.

        Args:
            key: Key name
            value: Value to store
            ex: Expiration time in seconds (TTL)
        """
        return await self.redis.set(key, value, ex=ex)
