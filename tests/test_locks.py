"""Tests for per-key async locks."""

import asyncio

from app.core.locks import KeyedLock


class TestKeyedLock:
    async def test_same_key_serializes(self):
        locks = KeyedLock()
        events = []

        async def worker(name: str):
            async with locks.hold("role-1"):
                events.append(f"{name}:start")
                await asyncio.sleep(0.01)
                events.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a:start", "a:end", "b:start", "b:end"],
            ["b:start", "b:end", "a:start", "a:end"],
        )

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        first_held = asyncio.Event()

        async def holder():
            async with locks.hold("role-1"):
                first_held.set()
                await asyncio.sleep(0.05)

        task = asyncio.create_task(holder())
        await first_held.wait()
        async with locks.hold("role-2"):
            assert locks.is_held("role-1")
        await task

    async def test_released_locks_are_dropped(self):
        locks = KeyedLock()

        async with locks.hold("role-1"):
            assert len(locks) == 1
            assert locks.is_held("role-1")

        assert len(locks) == 0
        assert not locks.is_held("role-1")
