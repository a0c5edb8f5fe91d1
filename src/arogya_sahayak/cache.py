from __future__ import annotations

import time
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

V = TypeVar("V")


class CacheBackend(Protocol[V]):
    def get(self, key: str) -> V | None:
        """Return the stored value, or None if missing or expired."""
        ...

    def set(self, key: str, value: V) -> None:
        ...


class TTLCache(Generic[V]):
    """
    In-process cache with a fixed time-to-live per entry.

    Expired entries are dropped lazily on lookup. When `max_entries` is
    reached the oldest entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int = 1024,
        clock: Callable[[], float] | None = None,
    ):
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self.max_entries = max(1, int(max_entries))
        self._clock: Callable[[], float] = clock or time.monotonic
        self._entries: dict[str, tuple[float, V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()
