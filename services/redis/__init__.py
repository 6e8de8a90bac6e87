from __future__ import annotations
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import ENV


class RedisClient:
    """
    Short-lived cache entries. The cache is an optimisation only: any Redis
    failure is logged and reported as a miss.
    """
    def __init__(self, url: Optional[str] = None):
        self.env = ENV()
        self.url = url or self.env.redis_url
        self.redis = aioredis.from_url(self.url, decode_responses=True)

    async def get_value(self, key: str) -> Optional[str]:
        try:
            raw = await self.redis.get(key)
        except (RedisError, OSError) as e:
            logging.warning(f"Redis get {key} failed, treating as miss: {e}")
            return None
        if not raw:
            return None
        return str(raw)

    async def set_value(self, key: str, value: str, ttl: int) -> bool:
        if ttl <= 0:
            return False
        try:
            await self.redis.set(key, value, ex=ttl)
            return True
        except (RedisError, OSError) as e:
            logging.warning(f"Redis set {key} failed: {e}")
            return False

    # --- PayHere OAuth token ---

    @staticmethod
    def _token_key(app_id: str) -> str:
        return f"payhere:oauth:{app_id}"

    async def get_access_token(self, app_id: str) -> Optional[str]:
        return await self.get_value(self._token_key(app_id))

    async def set_access_token(self, app_id: str, token: str, ttl: int) -> bool:
        return await self.set_value(self._token_key(app_id), token, ttl)
