"""
Per-key asyncio locks.

Serializes read-modify-write of the same aggregate row between
concurrent chain workers.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager


class KeyedLock:
    """
    Lazily created asyncio.Lock per key.

    Locks are acquired in sorted order so two writers touching
    overlapping key sets cannot deadlock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Hold the locks for all keys."""
        ordered = sorted(set(keys))
        held: list[str] = []
        for key in ordered:
            self._waiters[key] = self._waiters.get(key, 0) + 1
            lock = self._get(key)
            try:
                await lock.acquire()
            except BaseException:
                self._release_waiter(key)
                for held_key in reversed(held):
                    self._locks[held_key].release()
                    self._release_waiter(held_key)
                raise
            held.append(key)
        try:
            yield
        finally:
            for key in reversed(held):
                self._locks[key].release()
                self._release_waiter(key)

    def _release_waiter(self, key: str) -> None:
        # Drop idle locks to keep the map bounded
        self._waiters[key] -= 1
        if self._waiters[key] <= 0 and not self._locks[key].locked():
            del self._waiters[key]
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SharedExclusiveLock:
    """
    Many concurrent holders in shared mode, one in exclusive mode.

    Per-event applies hold it shared; a full view rebuild holds it
    exclusively. Waiting exclusive holders block new shared holders.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._shared = 0
        self._exclusive = False
        self._exclusive_waiting = 0

    @asynccontextmanager
    async def shared(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._exclusive and self._exclusive_waiting == 0
            )
            self._shared += 1
        try:
            yield
        finally:
            async with self._cond:
                self._shared -= 1
                self._cond.notify_all()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        async with self._cond:
            self._exclusive_waiting += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._exclusive and self._shared == 0
                )
            finally:
                self._exclusive_waiting -= 1
                self._cond.notify_all()
            self._exclusive = True
        try:
            yield
        finally:
            async with self._cond:
                self._exclusive = False
                self._cond.notify_all()
