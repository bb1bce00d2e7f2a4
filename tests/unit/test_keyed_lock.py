"""Tests for per-key and shared/exclusive asyncio locks."""

import asyncio

import pytest

from indexer.utils.keyed_lock import KeyedLock, SharedExclusiveLock


class TestKeyedLock:
    """Test KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def writer(name: str):
            async with locks.acquire(["user:a"]):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(writer("one"), writer("two"))

        assert order == ["one-in", "one-out", "two-in", "two-out"]

    @pytest.mark.asyncio
    async def test_disjoint_keys_run_concurrently(self):
        locks = KeyedLock()
        inside = 0
        peak = 0

        async def writer(key: str):
            nonlocal inside, peak
            async with locks.acquire([key]):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(writer("a"), writer("b"))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_overlapping_sets_do_not_deadlock(self):
        locks = KeyedLock()

        async def writer(keys):
            async with locks.acquire(keys):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(
            asyncio.gather(writer(["a", "b"]), writer(["b", "a"])), timeout=1
        )

    @pytest.mark.asyncio
    async def test_idle_locks_are_dropped(self):
        locks = KeyedLock()

        async with locks.acquire(["a", "b"]):
            assert len(locks) == 2

        assert len(locks) == 0


class TestSharedExclusiveLock:
    """Test SharedExclusiveLock."""

    @pytest.mark.asyncio
    async def test_shared_holders_overlap(self):
        gate = SharedExclusiveLock()
        inside = 0
        peak = 0

        async def reader():
            nonlocal inside, peak
            async with gate.shared():
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(reader(), reader(), reader())

        assert peak == 3

    @pytest.mark.asyncio
    async def test_exclusive_waits_for_shared(self):
        gate = SharedExclusiveLock()
        order = []

        async def shared():
            async with gate.shared():
                order.append("shared-in")
                await asyncio.sleep(0.02)
                order.append("shared-out")

        async def exclusive():
            await asyncio.sleep(0.005)
            async with gate.exclusive():
                order.append("exclusive")

        await asyncio.gather(shared(), exclusive())

        assert order == ["shared-in", "shared-out", "exclusive"]

    @pytest.mark.asyncio
    async def test_waiting_exclusive_blocks_new_shared(self):
        gate = SharedExclusiveLock()
        order = []

        async def first_shared():
            async with gate.shared():
                await asyncio.sleep(0.02)
            order.append("first-out")

        async def exclusive():
            await asyncio.sleep(0.005)
            async with gate.exclusive():
                order.append("exclusive")

        async def late_shared():
            await asyncio.sleep(0.01)
            async with gate.shared():
                order.append("late-shared")

        await asyncio.gather(first_shared(), exclusive(), late_shared())

        assert order.index("exclusive") < order.index("late-shared")
