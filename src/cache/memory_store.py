"""In-process key-value store with the same async JSON interface as RedisCache."""

import copy
from typing import Any, Optional


class InMemoryKeyValueStore:
    """Ephemeral store; values are deep-copied so callers cannot mutate them in place."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get_json(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        self._data[key] = copy.deepcopy(data)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)
