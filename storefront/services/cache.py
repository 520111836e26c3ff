import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CachedValue:
    value: Any
    fetched_at: float


class TTLCache:
    """
    Small keyed cache with expiry. The clock is injectable so tests can move
    time forward instead of sleeping.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CachedValue] = {}

    def get(self, key: str) -> Optional[CachedValue]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.fetched_at >= self.ttl:
            del self._entries[key]
            return None
        return entry

    def set(self, key: str, value: Any) -> CachedValue:
        entry = CachedValue(value=value, fetched_at=self.clock())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
