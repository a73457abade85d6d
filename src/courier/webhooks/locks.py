"""Keyed asyncio locks.

Every read-modify-write of an endpoint or delivery record happens while
holding the lock for its id, which makes each record single-writer.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    """A lazily populated map of asyncio locks, one per key.

    Locks are dropped once nobody holds or waits for them, so the map
    only grows with the number of keys in concurrent use.

    Example:
        ```python
        locks = KeyedLocks()
        async with locks.hold("whk_123"):
            endpoint = await store.get_endpoint("whk_123")
            endpoint.delivery_stats.record_created()
            await store.save_endpoint(endpoint)
        ```
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for `key` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
