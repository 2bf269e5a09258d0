from __future__ import annotations

import asyncio
import logging

import pytest

from bluerat.core.errors import StackError
from bluerat.core.listeners import Listener, listen_adapter, listen_session, relay
from bluerat.stack.base import AdapterEvent, AdapterEventKind, SessionEvent, SessionEventKind

from conftest import FakeAdapter, FakeStack


async def _spin(times: int = 10) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


def test_relay_forwards_until_stream_ends() -> None:
    async def stream():
        yield 1
        yield 2

    async def scenario() -> list[int]:
        channel: asyncio.Queue[int] = asyncio.Queue()
        await relay(stream(), channel)
        return [channel.get_nowait() for _ in range(channel.qsize())]

    assert asyncio.run(scenario()) == [1, 2]


def test_relay_signalled_before_start_reads_nothing() -> None:
    reads: list[str] = []

    async def stream():
        reads.append("a")
        yield "a"

    async def scenario() -> list[str]:
        channel: asyncio.Queue[str] = asyncio.Queue()
        stop = asyncio.get_running_loop().create_future()
        stop.set_result(None)
        await relay(stream(), channel, stop)
        return [channel.get_nowait() for _ in range(channel.qsize())]

    assert asyncio.run(scenario()) == []
    assert reads == []


def test_relay_stop_closes_an_idle_stream_right_away() -> None:
    closed: list[bool] = []

    async def stream(quiet: asyncio.Event):
        try:
            yield "a"
            await quiet.wait()
            yield "b"
        finally:
            closed.append(True)

    async def scenario() -> list[str]:
        channel: asyncio.Queue[str] = asyncio.Queue()
        stop = asyncio.get_running_loop().create_future()
        quiet = asyncio.Event()
        task = asyncio.get_running_loop().create_task(relay(stream(quiet), channel, stop))
        await _spin()
        assert closed == []

        stop.set_result(None)
        await _spin()
        assert task.done()
        assert closed == [True]
        quiet.set()
        return [channel.get_nowait() for _ in range(channel.qsize())]

    assert asyncio.run(scenario()) == ["a"]


def test_session_listener_is_not_cancellable(stack: FakeStack) -> None:
    async def scenario() -> None:
        listener = listen_session(stack)
        assert not listener.cancellable
        listener.cancel()
        assert not listener.cancelled

        event = SessionEvent(SessionEventKind.ADAPTER_ADDED, "hci2")
        stack.notifications.put_nowait(event)
        await _spin()
        assert listener.try_recv() == event
        assert listener.try_recv() is None
        listener.task.cancel()

    asyncio.run(scenario())


def test_adapter_listener_cancel_stops_discovery(adapter_a: FakeAdapter) -> None:
    async def scenario() -> None:
        listener = listen_adapter(adapter_a)
        await _spin()
        assert adapter_a.discovering

        added = AdapterEvent(AdapterEventKind.DEVICE_ADDED, address="AA:BB:CC:00:00:09")
        adapter_a.notifications.put_nowait(added)
        await _spin()
        assert listener.try_recv() == added

        listener.cancel()
        assert listener.cancelled
        await _spin()
        assert listener.task.done()
        assert not adapter_a.discovering

        adapter_a.notifications.put_nowait(AdapterEvent(AdapterEventKind.DEVICE_REMOVED, address="AA"))
        await _spin()
        assert listener.try_recv() is None

    asyncio.run(scenario())


def test_close_finishes_uncancellable_listener(stack: FakeStack) -> None:
    async def scenario() -> None:
        listener = listen_session(stack)
        await _spin()
        await listener.close()
        assert listener.task.done()

    asyncio.run(scenario())


def test_unexpected_stream_error_is_logged_and_retrieved(caplog: pytest.LogCaptureFixture) -> None:
    async def broken():
        yield "first"
        raise RuntimeError("bad payload")

    async def scenario() -> None:
        listener: Listener[str] = Listener("broken", broken())
        await _spin()
        assert listener.task.done()
        await listener.close()
        assert listener.try_recv() == "first"

    with caplog.at_level(logging.ERROR, logger="bluerat.core.listeners"):
        asyncio.run(scenario())
    assert "Broken listener crashed" in caplog.text


def test_stack_error_ends_listener_quietly() -> None:
    async def failing():
        yield "first"
        raise StackError("adapter vanished")

    async def scenario() -> None:
        listener: Listener[str] = Listener("broken", failing())
        await _spin()
        assert listener.task.done()
        assert listener.task.exception() is None
        assert listener.try_recv() == "first"

    asyncio.run(scenario())
