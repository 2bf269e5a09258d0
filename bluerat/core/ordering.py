"""Sort orders for adapter and device listings.

Every listing is sorted twice: first by address, then by the caller's primary
key. Python's sort is stable, so ties on the primary key keep address order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from bluerat.core.model import Adapter, Device

T = TypeVar("T", Adapter, Device)


@dataclass(frozen=True)
class Sorter(Generic[T]):
    name: str
    key: Callable[[T], Any]
    reverse: bool = False


def _battery_key(device: Device) -> tuple[bool, int]:
    return (device.battery is not None, device.battery or 0)


class AdapterOrder:
    BY_ADDRESS: Sorter[Adapter] = Sorter("address", lambda a: a.id.octets)
    BY_NAME: Sorter[Adapter] = Sorter("name", lambda a: a.name)
    BY_CONNECTIONS: Sorter[Adapter] = Sorter("connections", lambda a: a.connections, reverse=True)
    BY_DEVICES: Sorter[Adapter] = Sorter("devices", lambda a: len(a.devices), reverse=True)
    BY_POWER: Sorter[Adapter] = Sorter("power", lambda a: a.powered, reverse=True)


class DeviceOrder:
    BY_ADDRESS: Sorter[Device] = Sorter("address", lambda d: d.id.octets)
    BY_NAME: Sorter[Device] = Sorter("name", lambda d: d.alias)
    BY_CONNECTED: Sorter[Device] = Sorter("connected", lambda d: d.connected, reverse=True)
    BY_BATTERY: Sorter[Device] = Sorter("battery", _battery_key)


def sort_adapters(adapters: Iterable[Adapter], sorter: Sorter[Adapter]) -> list[Adapter]:
    by_address = sorted(adapters, key=AdapterOrder.BY_ADDRESS.key)
    return sorted(by_address, key=sorter.key, reverse=sorter.reverse)


def sort_devices(devices: Iterable[Device], sorter: Sorter[Device]) -> list[Device]:
    by_address = sorted(devices, key=DeviceOrder.BY_ADDRESS.key)
    return sorted(by_address, key=sorter.key, reverse=sorter.reverse)
