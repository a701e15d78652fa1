"""In-process TTL cache

Key -> (value, inserted_at). Expiry is checked on read; there is no
background sweeper. Instances are created by whoever wires the services
(server lifespan, tests) and passed in, never held at module level.
"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """Small dict-backed cache with per-entry expiry

    Args:
        ttl_seconds: Entry lifetime
        clock: Monotonic time source (injectable for tests)
        max_entries: Oldest entries are evicted past this size
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 1024,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        value, inserted_at = entry
        if self._clock() - inserted_at >= self.ttl_seconds:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]
        self._entries[key] = (value, self._clock())

    def __contains__(self, key: Hashable) -> bool:
        marker = object()
        return self.get(key, marker) is not marker

    def delete(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def delete_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every key matching predicate, return how many went"""
        doomed = [k for k in self._entries if predicate(k)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
