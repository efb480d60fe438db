# backend/pokedex_client/lru.py

from collections import OrderedDict
from typing import Any, Iterator, Optional


class LRUCache:
    """Bounded map; the most recently used key sits at the end."""

    def __init__(self, max_size: int = 150):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._data: "OrderedDict[str, Any]" = OrderedDict()

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        if key not in self._data:
            return default
        self._data.move_to_end(key)
        return self._data[key]

    def peek(self, key: str, default: Optional[Any] = None) -> Any:
        """Like get, without touching recency."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        elif len(self._data) >= self.max_size:
            self._data.popitem(last=False)
        self._data[key] = value

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
