from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar
import time

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Get-or-fetch cache whose entries expire after `ttl_seconds` on the injected clock.

    Expired entries are swept whenever a new key is stored. When the cache
    still holds `max_size` entries after the sweep, the oldest one is evicted.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic, max_size: int = 1000):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_size = max_size
        self.evictions = 0
        self._entries: Dict[Hashable, Tuple[float, T]] = {}

    def _is_expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self.ttl_seconds

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._is_expired(stored_at, self.clock()):
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: T) -> None:
        now = self.clock()
        if key not in self._entries:
            self.cleanup_expired(now)
            if len(self._entries) >= self.max_size:
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
                self.evictions += 1
        self._entries[key] = (now, value)

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """Drop every expired entry, returning how many were removed"""
        now = self.clock() if now is None else now
        expired = [k for k, (stored_at, _) in self._entries.items() if self._is_expired(stored_at, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get_or_fetch(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value or await `fetch()` and store it. Fetch errors are not cached."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await fetch()
        self.set(key, value)
        return value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
