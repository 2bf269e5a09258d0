"""Background relays from stack notification streams into pollable channels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Generic, TypeVar

from bluerat.core.errors import StackError
from bluerat.stack.base import AdapterEvent, AdapterHandle, BluetoothStack, DeviceEvent, DeviceHandle, SessionEvent

E = TypeVar("E")
LOGGER = logging.getLogger(__name__)


async def _next_event(events: AsyncGenerator[E, None]) -> tuple[bool, E | None]:
    try:
        return True, await events.__anext__()
    except StopAsyncIteration:
        return False, None


async def relay(
    stream: AsyncGenerator[E, None],
    channel: asyncio.Queue[E],
    stop: asyncio.Future[None] | None = None,
) -> None:
    """Forward every notification of ``stream`` into ``channel``.

    The relay waits on the stream and the stop signal together. Once the
    signal is set nothing more is forwarded: a pending read is abandoned and
    the stream is closed, which runs its cleanup right away.
    """
    if stop is None:
        stop = asyncio.get_running_loop().create_future()
    async with aclosing(stream) as events:
        while not stop.done():
            pending = asyncio.ensure_future(_next_event(events))
            try:
                await asyncio.wait((pending, stop), return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not pending.done():
                    pending.cancel()
                    await asyncio.wait((pending,))
            if pending.cancelled():
                return
            more, event = pending.result()
            if not more or stop.done():
                return
            channel.put_nowait(event)


class Listener(Generic[E]):
    def __init__(self, name: str, stream: AsyncGenerator[E, None], *, cancellable: bool = True) -> None:
        self.name = name
        self.channel: asyncio.Queue[E] = asyncio.Queue()
        self._stop: asyncio.Future[None] | None = (
            asyncio.get_running_loop().create_future() if cancellable else None
        )
        self.task = asyncio.get_running_loop().create_task(
            self._run(stream), name=f"bluerat-{name}-listener"
        )
        self.task.add_done_callback(self._log_failure)

    async def _run(self, stream: AsyncGenerator[E, None]) -> None:
        LOGGER.info("Listening to %s events", self.name)
        try:
            await relay(stream, self.channel, self._stop)
        except StackError as exc:
            LOGGER.warning("%s listener stopped: %s", self.name.capitalize(), exc)
            return
        LOGGER.info("Stopped listening to %s events", self.name)

    def _log_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("%s listener crashed", self.name.capitalize(), exc_info=exc)

    @property
    def cancellable(self) -> bool:
        return self._stop is not None

    @property
    def cancelled(self) -> bool:
        return self._stop is not None and self._stop.done()

    def cancel(self) -> None:
        """Ask the relay to stop; it forwards nothing after this."""
        if self._stop is not None and not self._stop.done():
            self._stop.set_result(None)

    async def close(self) -> None:
        """Stop the relay and wait for its task, whether or not it is cancellable."""
        self.cancel()
        if not self.cancellable:
            self.task.cancel()
        await asyncio.gather(self.task, return_exceptions=True)

    def try_recv(self) -> E | None:
        try:
            return self.channel.get_nowait()
        except asyncio.QueueEmpty:
            return None


def listen_session(stack: BluetoothStack) -> Listener[SessionEvent]:
    return Listener("session", stack.events(), cancellable=False)


def listen_adapter(adapter: AdapterHandle) -> Listener[AdapterEvent]:
    return Listener(f"{adapter.name} discovery", adapter.discover_devices())


def listen_device(device: DeviceHandle) -> Listener[DeviceEvent]:
    return Listener(f"{device.address} device", device.events())
