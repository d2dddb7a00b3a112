"""Key-value caching package for the notification core."""

from src.cache.memory_store import InMemoryKeyValueStore
from src.cache.redis_client import RedisCache

__all__ = ["InMemoryKeyValueStore", "RedisCache"]
