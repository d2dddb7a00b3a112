"""Redis cache client for the notification core.

Async JSON storage with TTL-based expiration, used as the local copy of
user notification preferences and saved items.
"""

import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis-backed JSON key-value store.

    Unlike the best-effort helpers elsewhere, ``get_json`` and ``set_json``
    let connection errors propagate so callers can decide whether to fall
    back to ephemeral state.
    """

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._async_client = None

    async def get_async_client(self):
        """Get or create async Redis client."""
        if self._async_client is None:
            try:
                import redis.asyncio as aioredis
                from src.settings import get_settings
                url = self._url or get_settings().redis_url
                self._async_client = aioredis.from_url(url, decode_responses=True)
                await self._async_client.ping()
            except Exception as e:
                logger.warning("Redis async connection failed: %s", e)
                self._async_client = None
                raise
        return self._async_client

    async def get_json(self, key: str) -> Optional[Any]:
        """Get a JSON-serialized value, or None when the key is absent."""
        client = await self.get_async_client()
        data = await client.get(key)
        if data is None:
            return None
        return json.loads(data)

    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-serializable value, with TTL when given."""
        client = await self.get_async_client()
        payload = json.dumps(data, default=str, ensure_ascii=False)
        if ttl:
            await client.setex(key, ttl, payload)
        else:
            await client.set(key, payload)

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns False when Redis is unreachable."""
        try:
            client = await self.get_async_client()
            return bool(await client.delete(key))
        except Exception as e:
            logger.warning("Redis delete failed for %s: %s", key, e)
            return False

    async def close(self) -> None:
        """Close the connection."""
        if self._async_client:
            await self._async_client.close()
            self._async_client = None
