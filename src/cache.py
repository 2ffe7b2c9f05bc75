"""TTL cache abstraction shared by the stream service and its collaborators.

The hosting process creates one cache and hands it to every component
that needs one; nothing here is a module-level singleton.
"""

import time
from typing import Any, Protocol


class ResultCache(Protocol):
    """Key-value store with a per-entry time to live."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...


class TTLCache:
    """In-memory TTL cache.

    Each entry carries its own expiry, so stream lists (minutes), metadata
    (an hour) and the tracker list (a day) can share one store.
    """

    def __init__(self, clock: Any = time.monotonic):
        """Initialize cache.

        Args:
            clock: Callable returning the current time in seconds
        """
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        """Get value from cache if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Set value in cache.

        A non-positive TTL stores nothing.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds
        """
        if ttl <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, self._clock() + ttl)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
