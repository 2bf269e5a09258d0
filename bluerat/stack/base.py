"""Bluetooth stack interfaces consumed by the registry and the listeners."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class SessionEventKind(Enum):
    ADAPTER_ADDED = "AdapterAdded"
    ADAPTER_REMOVED = "AdapterRemoved"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    adapter: str

    def __str__(self) -> str:
        return f"{self.kind.value}({self.adapter})"


class AdapterEventKind(Enum):
    DEVICE_ADDED = "DeviceAdded"
    DEVICE_REMOVED = "DeviceRemoved"
    PROPERTY_CHANGED = "PropertyChanged"


@dataclass(frozen=True)
class AdapterEvent:
    kind: AdapterEventKind
    address: str | None = None
    name: str | None = None
    value: Any = None

    def __str__(self) -> str:
        if self.kind is AdapterEventKind.PROPERTY_CHANGED:
            return f"{self.kind.value}({self.name}={self.value!r})"
        return f"{self.kind.value}({self.address})"


@dataclass(frozen=True)
class DeviceEvent:
    name: str
    value: Any

    def __str__(self) -> str:
        return f"PropertyChanged({self.name}={self.value!r})"


class DeviceHandle(Protocol):
    @property
    def address(self) -> str:
        """Hardware address of the device."""

    async def alias(self) -> str: ...

    async def icon(self) -> str | None: ...

    async def battery_percentage(self) -> int | None: ...

    async def is_connected(self) -> bool: ...

    async def is_trusted(self) -> bool: ...

    async def is_paired(self) -> bool: ...

    async def is_blocked(self) -> bool: ...

    async def set_trusted(self, value: bool) -> None: ...

    async def set_blocked(self, value: bool) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def pair(self) -> None: ...

    def events(self) -> AsyncGenerator[DeviceEvent, None]:
        """Stream property changes of this device."""


class AdapterHandle(Protocol):
    @property
    def name(self) -> str:
        """Interface name, e.g. ``hci0``."""

    async def address(self) -> str: ...

    async def is_powered(self) -> bool: ...

    async def is_pairable(self) -> bool: ...

    async def is_discoverable(self) -> bool: ...

    async def is_discovering(self) -> bool: ...

    async def set_powered(self, value: bool) -> None: ...

    async def set_pairable(self, value: bool) -> None: ...

    async def set_discoverable(self, value: bool) -> None: ...

    async def device_addresses(self) -> list[str]: ...

    def device(self, address: str) -> DeviceHandle: ...

    async def remove_device(self, address: str) -> None: ...

    def discover_devices(self) -> AsyncGenerator[AdapterEvent, None]:
        """Start discovery and stream device events until closed."""


class BluetoothStack(Protocol):
    async def adapters(self) -> list[AdapterHandle]: ...

    def events(self) -> AsyncGenerator[SessionEvent, None]:
        """Stream adapter added/removed notifications."""

    def disconnect(self) -> None: ...
