"""Core data models shared by the registry, the dashboard and the views."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Address:
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", self.value.strip().upper())

    @property
    def octets(self) -> tuple[int, ...]:
        return tuple(int(part, 16) for part in self.value.split(":"))

    def __lt__(self, other: Address) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.octets < other.octets

    def __str__(self) -> str:
        return self.value


class AdapterId(Address):
    """Hardware address of a local adapter."""


class DeviceId(Address):
    """Hardware address of a remote device."""


@dataclass(frozen=True)
class Position:
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class Device:
    id: DeviceId
    alias: str
    kind: str = "Unknown"
    battery: int | None = None
    connected: bool = False
    trusted: bool = False
    paired: bool = False
    blocked: bool = False
    new: bool = False

    def flags(self) -> list[str]:
        battery = f"Battery {self.battery}%" if self.battery is not None else ""
        return [
            label
            for enabled, label in (
                (self.connected, "Connected"),
                (self.connected and bool(battery), battery),
                (self.paired, "Paired"),
                (self.blocked, "Blocked"),
                (self.trusted, "Trusted"),
                (self.new, "New device"),
            )
            if enabled
        ]

    def info_line(self) -> str:
        parts = [f"Alias: {self.alias}", f"Address: {self.id}", f"Type: {self.kind}"]
        parts.extend(f"[{flag}]" for flag in self.flags())
        return " | ".join(parts)


@dataclass(frozen=True)
class Adapter:
    id: AdapterId
    name: str
    devices: tuple[Device, ...] = field(default_factory=tuple)
    powered: bool = False
    pairable: bool = False
    discoverable: bool = False
    scanning: bool = False

    @property
    def connections(self) -> int:
        return sum(1 for device in self.devices if device.connected)

    def device(self, device_id: DeviceId) -> Device | None:
        return next((d for d in self.devices if d.id == device_id), None)

    def flags(self) -> list[str]:
        return [
            label
            for enabled, label in (
                (self.discoverable, "Discoverable"),
                (self.pairable, "Pairable"),
                (self.scanning, "Scanning"),
            )
            if enabled
        ]

    def info_line(self) -> str:
        parts = [f"Name: {self.name}", f"Address: {self.id}"]
        parts.extend(f"[{flag}]" for flag in self.flags())
        return " | ".join(parts)


class AdapterActionKind(Enum):
    POWER = "power"
    SCAN = "scan"
    DISCOVERABLE = "discoverable"
    PAIRABLE = "pairable"
    INFO = "info"


_ADAPTER_LABELS = {
    (AdapterActionKind.POWER, True): "Power On",
    (AdapterActionKind.POWER, False): "Power Off",
    (AdapterActionKind.SCAN, True): "Start Scanning",
    (AdapterActionKind.SCAN, False): "Stop Scanning",
    (AdapterActionKind.DISCOVERABLE, True): "Set Discoverable",
    (AdapterActionKind.DISCOVERABLE, False): "Set Not Discoverable",
    (AdapterActionKind.PAIRABLE, True): "Set Pairable",
    (AdapterActionKind.PAIRABLE, False): "Set Not Pairable",
}

_ADAPTER_SHORTCUTS = {
    AdapterActionKind.POWER: "P",
    AdapterActionKind.SCAN: "s",
    AdapterActionKind.DISCOVERABLE: "d",
    AdapterActionKind.PAIRABLE: "p",
    AdapterActionKind.INFO: "i",
}


@dataclass(frozen=True)
class AdapterAction:
    kind: AdapterActionKind
    value: bool = False

    @property
    def shortcut(self) -> str:
        return _ADAPTER_SHORTCUTS[self.kind]

    def __str__(self) -> str:
        if self.kind is AdapterActionKind.INFO:
            return "Info"
        return _ADAPTER_LABELS[(self.kind, self.value)]


class DeviceActionKind(Enum):
    CONNECT = "connect"
    PAIR = "pair"
    TRUST = "trust"
    BLOCK = "block"
    INFO = "info"


_DEVICE_LABELS = {
    (DeviceActionKind.CONNECT, True): "Connect",
    (DeviceActionKind.CONNECT, False): "Disconnect",
    (DeviceActionKind.PAIR, True): "Pair",
    (DeviceActionKind.PAIR, False): "Unpair",
    (DeviceActionKind.TRUST, True): "Trust",
    (DeviceActionKind.TRUST, False): "Untrust",
    (DeviceActionKind.BLOCK, True): "Block",
    (DeviceActionKind.BLOCK, False): "Unblock",
}


@dataclass(frozen=True)
class DeviceAction:
    kind: DeviceActionKind
    value: bool = False

    @property
    def shortcut(self) -> str:
        if self.kind is DeviceActionKind.PAIR:
            return "p" if self.value else "r"
        return {
            DeviceActionKind.CONNECT: "c",
            DeviceActionKind.TRUST: "t",
            DeviceActionKind.BLOCK: "b",
            DeviceActionKind.INFO: "i",
        }[self.kind]

    def __str__(self) -> str:
        if self.kind is DeviceActionKind.INFO:
            return "Info"
        return _DEVICE_LABELS[(self.kind, self.value)]


def adapter_menu_actions(adapter: Adapter) -> list[AdapterAction]:
    """Toggles of the adapter's current flags, followed by Info."""
    return [
        AdapterAction(AdapterActionKind.POWER, not adapter.powered),
        AdapterAction(AdapterActionKind.DISCOVERABLE, not adapter.discoverable),
        AdapterAction(AdapterActionKind.SCAN, not adapter.scanning),
        AdapterAction(AdapterActionKind.PAIRABLE, not adapter.pairable),
        AdapterAction(AdapterActionKind.INFO),
    ]


def device_menu_actions(device: Device) -> list[DeviceAction]:
    return [
        DeviceAction(DeviceActionKind.CONNECT, not device.connected),
        DeviceAction(DeviceActionKind.TRUST, not device.trusted),
        DeviceAction(DeviceActionKind.BLOCK, not device.blocked),
        DeviceAction(DeviceActionKind.PAIR, not device.paired),
        DeviceAction(DeviceActionKind.INFO),
    ]
