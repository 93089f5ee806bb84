"""
Per-player action locks.

Only one combat or dungeon action per player runs at a time inside this
process. Cross-process exclusivity comes from the storage-level active
markers.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class PlayerLocks:
    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        # holders + waiters per player; the lock is dropped when it reaches 0
        self._users: Dict[str, int] = {}

    def _acquire_ref(self, player_id: str) -> asyncio.Lock:
        lock = self._locks.get(player_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[player_id] = lock
        self._users[player_id] = self._users.get(player_id, 0) + 1
        return lock

    def _release_ref(self, player_id: str) -> None:
        self._users[player_id] -= 1
        if self._users[player_id] == 0:
            del self._users[player_id]
            del self._locks[player_id]

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, player_id: str) -> AsyncIterator[None]:
        lock = self._acquire_ref(player_id)
        try:
            async with lock:
                yield
        finally:
            self._release_ref(player_id)
