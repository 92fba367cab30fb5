"""Short-TTL read-through cache handed to one resolution pass."""

import time
from collections.abc import Awaitable, Callable
from typing import Any


class RecordCache:
    """
    Read-through cache for related records.

    Created per resolution pass and passed in explicitly; nothing is shared
    between requests. Negative results (None) are cached as well so a missing
    record costs one round-trip, not one per placeholder.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self.loads = 0

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        now = self._clock()
        cached = self._entries.get(key)
        if cached is not None and cached[0] > now:
            return cached[1]

        value = await loader()
        self.loads += 1
        self._entries[key] = (now + self.ttl_seconds, value)
        return value
