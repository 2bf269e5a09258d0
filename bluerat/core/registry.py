"""In-memory mirror of the adapters and devices known to the Bluetooth stack."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from bluerat.core.errors import AdapterNotFoundError, DeviceNotFoundError, UnsupportedActionError
from bluerat.core.model import (
    Adapter,
    AdapterAction,
    AdapterActionKind,
    AdapterId,
    Device,
    DeviceAction,
    DeviceActionKind,
    DeviceId,
)
from bluerat.core.ordering import AdapterOrder, DeviceOrder, Sorter, sort_adapters, sort_devices
from bluerat.stack.base import AdapterHandle, BluetoothStack, DeviceHandle

LOGGER = logging.getLogger(__name__)


async def read_device(handle: DeviceHandle) -> Device:
    alias, icon, battery, connected, trusted, paired, blocked = await asyncio.gather(
        handle.alias(),
        handle.icon(),
        handle.battery_percentage(),
        handle.is_connected(),
        handle.is_trusted(),
        handle.is_paired(),
        handle.is_blocked(),
    )
    return Device(
        id=DeviceId(handle.address),
        alias=alias,
        kind=icon or "Unknown",
        battery=battery,
        connected=connected,
        trusted=trusted,
        paired=paired,
        blocked=blocked,
    )


async def read_adapter(handle: AdapterHandle) -> Adapter:
    addresses = await handle.device_addresses()
    devices = await asyncio.gather(*(read_device(handle.device(a)) for a in addresses))
    address, powered, pairable, discoverable, scanning = await asyncio.gather(
        handle.address(),
        handle.is_powered(),
        handle.is_pairable(),
        handle.is_discoverable(),
        handle.is_discovering(),
    )
    return Adapter(
        id=AdapterId(address),
        name=handle.name,
        devices=tuple(devices),
        powered=powered,
        pairable=pairable,
        discoverable=discoverable,
        scanning=scanning,
    )


class Registry:
    """Snapshot of stack state, rebuilt on demand and read by the views.

    Devices reported by discovery are remembered by id, so their ``new`` flag
    survives the rescans that follow. An adapter reads as ``scanning`` exactly
    while it is marked here, whatever its Discovering property says.
    """

    def __init__(self, stack: BluetoothStack) -> None:
        self.stack = stack
        self._adapters: dict[AdapterId, Adapter] = {}
        self._new_devices: set[DeviceId] = set()
        self._scanning: set[AdapterId] = set()

    async def rescan_all(self) -> None:
        handles = await self.stack.adapters()
        adapters = await asyncio.gather(*(read_adapter(h) for h in handles))
        self._adapters = {adapter.id: adapter for adapter in adapters}
        self._apply_marks()
        LOGGER.debug("Rescanned %d adapter(s)", len(self._adapters))

    async def rescan_one(self, adapter_id: AdapterId) -> None:
        """Re-read one adapter; its old entry stays if the read fails."""
        handle = await self.stack_adapter(adapter_id)
        if handle is None:
            self._adapters.pop(adapter_id, None)
            LOGGER.info("Adapter %s is gone, dropped from registry", adapter_id)
            return
        adapter = await read_adapter(handle)
        self._adapters[adapter.id] = adapter
        self._apply_marks()

    def set_scanning(self, adapter_id: AdapterId, scanning: bool) -> None:
        if scanning:
            self._scanning.add(adapter_id)
        else:
            self._scanning.discard(adapter_id)
        adapter = self._adapters.get(adapter_id)
        if adapter is not None:
            self._adapters[adapter_id] = replace(adapter, scanning=scanning)

    def mark_new(self, device_id: DeviceId) -> bool:
        self._new_devices.add(device_id)
        return self._flag_first(device_id)

    def forget_new(self, device_id: DeviceId) -> None:
        self._new_devices.discard(device_id)

    def _apply_marks(self) -> None:
        for adapter_id, adapter in self._adapters.items():
            self._adapters[adapter_id] = replace(adapter, scanning=adapter_id in self._scanning)
        for device_id in self._new_devices:
            self._flag_first(device_id)

    def _flag_first(self, device_id: DeviceId) -> bool:
        for adapter in sort_adapters(self._adapters.values(), AdapterOrder.BY_ADDRESS):
            devices = list(adapter.devices)
            for index, device in enumerate(devices):
                if device.id != device_id:
                    continue
                devices[index] = replace(device, new=True)
                self._adapters[adapter.id] = replace(adapter, devices=tuple(devices))
                return True
        return False

    def adapters(self, sorter: Sorter[Adapter] = AdapterOrder.BY_ADDRESS) -> list[Adapter]:
        return sort_adapters(self._adapters.values(), sorter)

    def adapter(self, adapter_id: AdapterId) -> Adapter | None:
        return self._adapters.get(adapter_id)

    def devices(
        self,
        adapter_id: AdapterId,
        sorter: Sorter[Device] = DeviceOrder.BY_ADDRESS,
    ) -> list[Device]:
        adapter = self._adapters.get(adapter_id)
        if adapter is None:
            return []
        return sort_devices(adapter.devices, sorter)

    def device(self, adapter_id: AdapterId, device_id: DeviceId) -> Device | None:
        adapter = self._adapters.get(adapter_id)
        return adapter.device(device_id) if adapter is not None else None

    async def stack_adapter(self, adapter_id: AdapterId) -> AdapterHandle | None:
        for handle in await self.stack.adapters():
            if AdapterId(await handle.address()) == adapter_id:
                return handle
        return None

    async def stack_device(self, adapter_id: AdapterId, device_id: DeviceId) -> DeviceHandle | None:
        handle = await self.stack_adapter(adapter_id)
        if handle is None:
            return None
        addresses = {DeviceId(a) for a in await handle.device_addresses()}
        if device_id not in addresses:
            return None
        return handle.device(str(device_id))

    async def apply_adapter_action(self, adapter_id: AdapterId, action: AdapterAction) -> AdapterId:
        handle = await self.stack_adapter(adapter_id)
        if handle is None:
            raise AdapterNotFoundError(f"Adapter {adapter_id} not found")

        if action.kind is AdapterActionKind.POWER:
            await handle.set_powered(action.value)
        elif action.kind is AdapterActionKind.DISCOVERABLE:
            await handle.set_discoverable(action.value)
        elif action.kind is AdapterActionKind.PAIRABLE:
            await handle.set_pairable(action.value)
        elif action.kind is AdapterActionKind.SCAN:
            raise UnsupportedActionError("Scanning is controlled by the discovery listener")
        else:
            raise UnsupportedActionError(f"{action} is not implemented")
        return adapter_id

    async def apply_device_action(
        self,
        adapter_id: AdapterId,
        device_id: DeviceId,
        action: DeviceAction,
    ) -> AdapterId:
        if action.kind is DeviceActionKind.INFO:
            raise UnsupportedActionError(f"{action} is not implemented")

        adapter = await self.stack_adapter(adapter_id)
        if adapter is None:
            raise AdapterNotFoundError(f"Adapter {adapter_id} not found")
        device = await self.stack_device(adapter_id, device_id)
        if device is None:
            raise DeviceNotFoundError(f"Device {device_id} not found")

        if action.kind is DeviceActionKind.CONNECT:
            await (device.connect() if action.value else device.disconnect())
        elif action.kind is DeviceActionKind.PAIR:
            if action.value:
                await device.pair()
            else:
                await adapter.remove_device(device.address)
        elif action.kind is DeviceActionKind.TRUST:
            await device.set_trusted(action.value)
        elif action.kind is DeviceActionKind.BLOCK:
            await device.set_blocked(action.value)
        return adapter_id
