"""
Per-user serialization.

Each request runs load -> mutate -> save against a user's directory with no
transaction around it. Two such units for the same user must never
interleave, otherwise both load the same snapshot and the later save
silently drops what the earlier one committed. The registry hands out one
asyncio.Lock per username; different users never wait on each other.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserLockRegistry:
    """Registry of per-username locks, dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, username: str) -> bool:
        lock = self._locks.get(username)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, username: str) -> AsyncIterator[None]:
        """Hold the lock for `username` for the duration of the block."""
        lock = self._locks.setdefault(username, asyncio.Lock())
        self._users[username] = self._users.get(username, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[username] -= 1
            if self._users[username] == 0:
                del self._users[username]
                del self._locks[username]
