"""BlueZ implementation of the Bluetooth stack interfaces over the system D-Bus."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from dbus_next import BusType, Variant
from dbus_next.aio import MessageBus, ProxyInterface, ProxyObject
from dbus_next.errors import DBusError, InterfaceNotFoundError

from bluerat.core.errors import StackError
from bluerat.stack.base import (
    AdapterEvent,
    AdapterEventKind,
    DeviceEvent,
    SessionEvent,
    SessionEventKind,
)

BLUEZ_SERVICE = "org.bluez"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
BATTERY_INTERFACE = "org.bluez.Battery1"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"

LOGGER = logging.getLogger(__name__)


@contextmanager
def _dbus_errors(context: str) -> Iterator[None]:
    try:
        yield
    except DBusError as exc:
        LOGGER.debug("%s: %s (%s)", context, exc.text, exc.type)
        raise StackError(f"{context}: {exc.text}") from exc
    except InterfaceNotFoundError as exc:
        raise StackError(f"{context}: {exc}") from exc


def device_path(adapter_path: str, address: str) -> str:
    return f"{adapter_path}/dev_{address.upper().replace(':', '_')}"


def address_from_path(path: str) -> str:
    return path.rsplit("/", 1)[-1].removeprefix("dev_").replace("_", ":")


class BluezStack:
    """Session-level access to BlueZ: adapter enumeration and adapter events."""

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        self._proxies: dict[str, ProxyObject] = {}

    @classmethod
    async def connect(cls) -> BluezStack:
        try:
            bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        except (DBusError, OSError) as exc:
            raise StackError(f"Could not connect to the system D-Bus: {exc}") from exc
        LOGGER.info("Connected to system D-Bus")
        return cls(bus)

    def disconnect(self) -> None:
        self._bus.disconnect()

    async def interface(self, path: str, name: str) -> ProxyInterface:
        with _dbus_errors(f"Could not access {name} on {path}"):
            proxy = self._proxies.get(path)
            if proxy is None:
                introspection = await self._bus.introspect(BLUEZ_SERVICE, path)
                proxy = self._bus.get_proxy_object(BLUEZ_SERVICE, path, introspection)
                self._proxies[path] = proxy
            return proxy.get_interface(name)

    def forget(self, path: str) -> None:
        self._proxies.pop(path, None)

    async def managed_objects(self) -> dict[str, dict[str, dict[str, Variant]]]:
        manager = await self.interface("/", OBJECT_MANAGER_INTERFACE)
        with _dbus_errors("Could not enumerate BlueZ objects"):
            return await manager.call_get_managed_objects()

    async def get_property(self, path: str, interface: str, name: str) -> Any:
        properties = await self.interface(path, PROPERTIES_INTERFACE)
        with _dbus_errors(f"Reading {name} failed"):
            variant = await properties.call_get(interface, name)
        return variant.value

    async def set_property(self, path: str, interface: str, name: str, value: bool) -> None:
        properties = await self.interface(path, PROPERTIES_INTERFACE)
        with _dbus_errors(f"Setting {name} failed"):
            await properties.call_set(interface, name, Variant("b", value))

    async def call(self, path: str, interface: str, method: str, *args: Any) -> Any:
        proxy = await self.interface(path, interface)
        label = method.replace("_", " ").capitalize()
        with _dbus_errors(f"{label} failed"):
            return await getattr(proxy, f"call_{method}")(*args)

    @asynccontextmanager
    async def subscribe(
        self,
        path: str,
        interface: str,
        handlers: dict[str, Callable[..., None]],
    ) -> AsyncIterator[None]:
        proxy = await self.interface(path, interface)
        for signal, handler in handlers.items():
            getattr(proxy, f"on_{signal}")(handler)
        try:
            yield
        finally:
            for signal, handler in handlers.items():
                getattr(proxy, f"off_{signal}")(handler)

    async def adapters(self) -> list[BluezAdapter]:
        objects = await self.managed_objects()
        return [
            BluezAdapter(self, path)
            for path, interfaces in sorted(objects.items())
            if ADAPTER_INTERFACE in interfaces
        ]

    async def events(self) -> AsyncGenerator[SessionEvent, None]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue()

        def added(path: str, interfaces: dict[str, Any]) -> None:
            if ADAPTER_INTERFACE in interfaces:
                queue.put_nowait(SessionEvent(SessionEventKind.ADAPTER_ADDED, path.rsplit("/", 1)[-1]))

        def removed(path: str, interfaces: list[str]) -> None:
            if ADAPTER_INTERFACE in interfaces:
                self.forget(path)
                queue.put_nowait(SessionEvent(SessionEventKind.ADAPTER_REMOVED, path.rsplit("/", 1)[-1]))

        handlers = {"interfaces_added": added, "interfaces_removed": removed}
        async with self.subscribe("/", OBJECT_MANAGER_INTERFACE, handlers):
            while True:
                yield await queue.get()


class BluezAdapter:
    def __init__(self, stack: BluezStack, path: str) -> None:
        self._stack = stack
        self.path = path

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    async def _get(self, name: str) -> Any:
        return await self._stack.get_property(self.path, ADAPTER_INTERFACE, name)

    async def address(self) -> str:
        return str(await self._get("Address"))

    async def is_powered(self) -> bool:
        return bool(await self._get("Powered"))

    async def is_pairable(self) -> bool:
        return bool(await self._get("Pairable"))

    async def is_discoverable(self) -> bool:
        return bool(await self._get("Discoverable"))

    async def is_discovering(self) -> bool:
        return bool(await self._get("Discovering"))

    async def set_powered(self, value: bool) -> None:
        await self._stack.set_property(self.path, ADAPTER_INTERFACE, "Powered", value)

    async def set_pairable(self, value: bool) -> None:
        await self._stack.set_property(self.path, ADAPTER_INTERFACE, "Pairable", value)

    async def set_discoverable(self, value: bool) -> None:
        await self._stack.set_property(self.path, ADAPTER_INTERFACE, "Discoverable", value)

    async def device_addresses(self) -> list[str]:
        objects = await self._stack.managed_objects()
        addresses: list[str] = []
        for path, interfaces in sorted(objects.items()):
            properties = interfaces.get(DEVICE_INTERFACE)
            if properties is None:
                continue
            owner = properties.get("Adapter")
            if owner is not None and owner.value != self.path:
                continue
            if owner is None and not path.startswith(f"{self.path}/"):
                continue
            address = properties.get("Address")
            addresses.append(str(address.value) if address is not None else address_from_path(path))
        return addresses

    def device(self, address: str) -> BluezDevice:
        return BluezDevice(self._stack, device_path(self.path, address), address)

    async def remove_device(self, address: str) -> None:
        path = device_path(self.path, address)
        await self._stack.call(self.path, ADAPTER_INTERFACE, "remove_device", path)
        self._stack.forget(path)

    async def discover_devices(self) -> AsyncGenerator[AdapterEvent, None]:
        queue: asyncio.Queue[AdapterEvent] = asyncio.Queue()
        prefix = f"{self.path}/"

        def added(path: str, interfaces: dict[str, dict[str, Variant]]) -> None:
            if not path.startswith(prefix) or DEVICE_INTERFACE not in interfaces:
                return
            address = interfaces[DEVICE_INTERFACE].get("Address")
            queue.put_nowait(
                AdapterEvent(
                    AdapterEventKind.DEVICE_ADDED,
                    address=str(address.value) if address is not None else address_from_path(path),
                )
            )

        def removed(path: str, interfaces: list[str]) -> None:
            if path.startswith(prefix) and DEVICE_INTERFACE in interfaces:
                self._stack.forget(path)
                queue.put_nowait(
                    AdapterEvent(AdapterEventKind.DEVICE_REMOVED, address=address_from_path(path))
                )

        def changed(interface: str, properties: dict[str, Variant], invalidated: list[str]) -> None:
            if interface != ADAPTER_INTERFACE:
                return
            for name, variant in properties.items():
                queue.put_nowait(
                    AdapterEvent(AdapterEventKind.PROPERTY_CHANGED, name=name, value=variant.value)
                )

        object_handlers = {"interfaces_added": added, "interfaces_removed": removed}
        async with self._stack.subscribe("/", OBJECT_MANAGER_INTERFACE, object_handlers), \
                self._stack.subscribe(self.path, PROPERTIES_INTERFACE, {"properties_changed": changed}):
            await self._stack.call(self.path, ADAPTER_INTERFACE, "start_discovery")
            LOGGER.info("Discovery started on %s", self.name)
            try:
                while True:
                    yield await queue.get()
            finally:
                try:
                    await self._stack.call(self.path, ADAPTER_INTERFACE, "stop_discovery")
                except StackError as exc:
                    LOGGER.debug("Stopping discovery on %s: %s", self.name, exc)
                LOGGER.info("Discovery stopped on %s", self.name)


class BluezDevice:
    def __init__(self, stack: BluezStack, path: str, address: str) -> None:
        self._stack = stack
        self.path = path
        self._address = address.upper()

    @property
    def address(self) -> str:
        return self._address

    async def _get(self, name: str) -> Any:
        return await self._stack.get_property(self.path, DEVICE_INTERFACE, name)

    async def alias(self) -> str:
        return str(await self._get("Alias"))

    async def icon(self) -> str | None:
        try:
            return str(await self._get("Icon"))
        except StackError:
            return None

    async def battery_percentage(self) -> int | None:
        try:
            return int(await self._stack.get_property(self.path, BATTERY_INTERFACE, "Percentage"))
        except StackError:
            return None

    async def is_connected(self) -> bool:
        return bool(await self._get("Connected"))

    async def is_trusted(self) -> bool:
        return bool(await self._get("Trusted"))

    async def is_paired(self) -> bool:
        return bool(await self._get("Paired"))

    async def is_blocked(self) -> bool:
        return bool(await self._get("Blocked"))

    async def set_trusted(self, value: bool) -> None:
        await self._stack.set_property(self.path, DEVICE_INTERFACE, "Trusted", value)

    async def set_blocked(self, value: bool) -> None:
        await self._stack.set_property(self.path, DEVICE_INTERFACE, "Blocked", value)

    async def connect(self) -> None:
        await self._stack.call(self.path, DEVICE_INTERFACE, "connect")

    async def disconnect(self) -> None:
        await self._stack.call(self.path, DEVICE_INTERFACE, "disconnect")

    async def pair(self) -> None:
        await self._stack.call(self.path, DEVICE_INTERFACE, "pair")

    async def events(self) -> AsyncGenerator[DeviceEvent, None]:
        queue: asyncio.Queue[DeviceEvent] = asyncio.Queue()

        def changed(interface: str, properties: dict[str, Variant], invalidated: list[str]) -> None:
            if interface not in (DEVICE_INTERFACE, BATTERY_INTERFACE):
                return
            for name, variant in properties.items():
                queue.put_nowait(DeviceEvent(name=name, value=variant.value))

        async with self._stack.subscribe(self.path, PROPERTIES_INTERFACE, {"properties_changed": changed}):
            while True:
                yield await queue.get()
