from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncGenerator

import pytest

from bluerat.core.model import Position
from bluerat.stack.base import AdapterEvent, DeviceEvent, SessionEvent
from bluerat.ui.keymap import Click, InputEvent, Key, MouseButton


async def _drain(queue: asyncio.Queue) -> AsyncGenerator:
    while True:
        yield await queue.get()


class FakeDevice:
    def __init__(
        self,
        address: str,
        alias: str,
        *,
        connected: bool = False,
        trusted: bool = False,
        paired: bool = False,
        blocked: bool = False,
        icon: str | None = "audio-headset",
        battery: int | None = None,
    ) -> None:
        self._address = address
        self._alias = alias
        self.connected = connected
        self.trusted = trusted
        self.paired = paired
        self.blocked = blocked
        self._icon = icon
        self._battery = battery
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.notifications: asyncio.Queue[DeviceEvent] = asyncio.Queue()

    @property
    def address(self) -> str:
        return self._address

    async def alias(self) -> str:
        return self._alias

    async def icon(self) -> str | None:
        return self._icon

    async def battery_percentage(self) -> int | None:
        return self._battery

    async def is_connected(self) -> bool:
        return self.connected

    async def is_trusted(self) -> bool:
        return self.trusted

    async def is_paired(self) -> bool:
        return self.paired

    async def is_blocked(self) -> bool:
        return self.blocked

    async def _act(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def set_trusted(self, value: bool) -> None:
        await self._act(f"trusted={value}")
        self.trusted = value

    async def set_blocked(self, value: bool) -> None:
        await self._act(f"blocked={value}")
        self.blocked = value

    async def connect(self) -> None:
        await self._act("connect")
        self.connected = True

    async def disconnect(self) -> None:
        await self._act("disconnect")
        self.connected = False

    async def pair(self) -> None:
        await self._act("pair")
        self.paired = True

    def events(self) -> AsyncGenerator[DeviceEvent, None]:
        return _drain(self.notifications)


class FakeAdapter:
    def __init__(
        self,
        address: str,
        name: str,
        devices: list[FakeDevice] | None = None,
        *,
        powered: bool = True,
        pairable: bool = False,
        discoverable: bool = False,
    ) -> None:
        self._address = address
        self._name = name
        self.devices = {d.address: d for d in devices or []}
        self.powered = powered
        self.pairable = pairable
        self.discoverable = discoverable
        self.discovering = False
        self.removed: list[str] = []
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.notifications: asyncio.Queue[AdapterEvent] = asyncio.Queue()

    @property
    def name(self) -> str:
        return self._name

    async def address(self) -> str:
        return self._address

    async def is_powered(self) -> bool:
        return self.powered

    async def is_pairable(self) -> bool:
        return self.pairable

    async def is_discoverable(self) -> bool:
        return self.discoverable

    async def is_discovering(self) -> bool:
        return self.discovering

    async def _act(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()

    async def set_powered(self, value: bool) -> None:
        await self._act(f"powered={value}")
        self.powered = value

    async def set_pairable(self, value: bool) -> None:
        await self._act(f"pairable={value}")
        self.pairable = value

    async def set_discoverable(self, value: bool) -> None:
        await self._act(f"discoverable={value}")
        self.discoverable = value

    async def device_addresses(self) -> list[str]:
        return list(self.devices)

    def device(self, address: str) -> FakeDevice:
        return self.devices[address]

    async def remove_device(self, address: str) -> None:
        self.removed.append(address)
        self.devices.pop(address, None)

    async def discover_devices(self) -> AsyncGenerator[AdapterEvent, None]:
        self.discovering = True
        try:
            while True:
                yield await self.notifications.get()
        finally:
            self.discovering = False


class FakeStack:
    def __init__(self, adapters: list[FakeAdapter] | None = None) -> None:
        self.handles = list(adapters or [])
        self.notifications: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self.disconnected = False

    async def adapters(self) -> list[FakeAdapter]:
        return list(self.handles)

    def events(self) -> AsyncGenerator[SessionEvent, None]:
        return _drain(self.notifications)

    def disconnect(self) -> None:
        self.disconnected = True


class FakeTerminal:
    def __init__(self, keys: list[str] | None = None) -> None:
        self.keys: deque[InputEvent] = deque(Key(k) for k in keys or [])
        self.frames = 0

    async def poll(self, timeout_s: float) -> bool:
        await asyncio.sleep(0)
        return bool(self.keys)

    def read(self) -> InputEvent:
        return self.keys.popleft()

    def draw(self, views) -> None:
        self.frames += 1

    def press(self, *keys: str) -> None:
        self.keys.extend(Key(k) for k in keys)

    def click(self, button: MouseButton, x: int, y: int) -> None:
        self.keys.append(Click(button, Position(x=x, y=y)))


@pytest.fixture
def headset() -> FakeDevice:
    return FakeDevice("AA:BB:CC:00:00:01", "Headset", connected=True, paired=True, battery=80)


@pytest.fixture
def keyboard() -> FakeDevice:
    return FakeDevice("AA:BB:CC:00:00:02", "Keyboard", paired=True)


@pytest.fixture
def adapter_a(headset: FakeDevice, keyboard: FakeDevice) -> FakeAdapter:
    return FakeAdapter("00:11:00:00:00:00", "hci0", [headset, keyboard])


@pytest.fixture
def adapter_b() -> FakeAdapter:
    return FakeAdapter("00:22:00:00:00:00", "hci1", powered=False)


@pytest.fixture
def stack(adapter_a: FakeAdapter, adapter_b: FakeAdapter) -> FakeStack:
    return FakeStack([adapter_b, adapter_a])
