from __future__ import annotations

import asyncio

from bluerat.core.errors import StackError
from bluerat.core.tasks import IDLE, INTERNAL_ERROR, RUNNING, Failed, Succeeded, TaskTracker


async def _settle(tracker: TaskTracker) -> None:
    for _ in range(10):
        await asyncio.sleep(0)
        if tracker.poll() is not RUNNING:
            return


def test_idle_before_first_action() -> None:
    tracker: TaskTracker[str] = TaskTracker("device")
    assert tracker.poll() == IDLE
    assert tracker.consume() is None


def test_success_is_reported_and_repeated_until_next_action() -> None:
    async def scenario() -> None:
        tracker: TaskTracker[str] = TaskTracker("device")
        done: list[bool] = []

        async def work() -> str:
            return "00:11"

        assert tracker.execute(work, lambda: done.append(True)) is not None
        assert tracker.poll() == RUNNING
        await _settle(tracker)

        assert done == [True]
        assert tracker.poll() == Succeeded("00:11")
        assert tracker.poll() == Succeeded("00:11")
        assert tracker.consume() == Succeeded("00:11")
        assert tracker.consume() is None

    asyncio.run(scenario())


def test_stack_error_becomes_failed_message() -> None:
    async def scenario() -> None:
        tracker: TaskTracker[str] = TaskTracker("device")

        async def work() -> str:
            raise StackError("Connection refused")

        tracker.execute(work, lambda: None)
        await _settle(tracker)
        assert tracker.consume() == Failed("Connection refused")

    asyncio.run(scenario())


def test_single_flight_refuses_second_action() -> None:
    async def scenario() -> None:
        tracker: TaskTracker[str] = TaskTracker("device")
        gate = asyncio.Event()
        started: list[str] = []

        async def first() -> str:
            started.append("first")
            await gate.wait()
            return "first"

        async def second() -> str:
            started.append("second")
            return "second"

        task = tracker.execute(first, lambda: None)
        await asyncio.sleep(0)
        assert tracker.execute(second, lambda: None) is None
        assert tracker.poll() == RUNNING

        gate.set()
        await task
        assert tracker.poll() == Succeeded("first")
        assert started == ["first"]

    asyncio.run(scenario())


def test_slot_is_free_after_terminal_status() -> None:
    async def scenario() -> None:
        tracker: TaskTracker[int] = TaskTracker("adapter")

        async def work() -> int:
            return 1

        await tracker.execute(work, lambda: None)
        assert tracker.poll() == Succeeded(1)

        async def again() -> int:
            return 2

        assert tracker.execute(again, lambda: None) is not None
        assert tracker.poll() == RUNNING
        await _settle(tracker)
        assert tracker.poll() == Succeeded(2)

    asyncio.run(scenario())


def test_unexpected_exception_is_internal_error() -> None:
    async def scenario() -> None:
        tracker: TaskTracker[int] = TaskTracker("adapter")
        done: list[bool] = []

        async def work() -> int:
            raise RuntimeError("boom")

        task = tracker.execute(work, lambda: done.append(True))
        await asyncio.gather(task, return_exceptions=True)

        assert done == [True]
        assert tracker.consume() == Failed(INTERNAL_ERROR)
        assert tracker.poll() == Failed(INTERNAL_ERROR)

    asyncio.run(scenario())
