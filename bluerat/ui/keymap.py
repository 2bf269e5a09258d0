"""Input events and key bindings: commands per scope and the shortcuts that trigger them."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from bluerat.core.model import Position

C = TypeVar("C", bound=Enum)


@dataclass(frozen=True)
class Key:
    """A key press, named like Textual names keys ("q", "P", "enter", "up")."""

    name: str

    def __str__(self) -> str:
        return {" ": "space"}.get(self.name, self.name)


class MouseButton(Enum):
    LEFT = 1
    RIGHT = 3


@dataclass(frozen=True)
class Click:
    """A mouse button press at a screen cell."""

    button: MouseButton
    position: Position


InputEvent = Union[Key, Click]


@dataclass(frozen=True)
class Shortcut(Generic[C]):
    command: C
    keys: tuple[str, ...]

    def describe(self) -> str:
        return ", ".join(str(Key(k)) for k in self.keys)


class KeyMap(Generic[C]):
    def __init__(self, title: str, shortcuts: list[Shortcut[C]]) -> None:
        self.title = title
        self.shortcuts = shortcuts

    def get_command(self, key: Key) -> C | None:
        for shortcut in self.shortcuts:
            if key.name in shortcut.keys:
                return shortcut.command
        return None


class AppCommand(Enum):
    CLOSE_VIEW = "quit view"
    OPEN_HELP = "help"
    REFRESH = "refresh"


class TableCommand(Enum):
    UP = "move up"
    DOWN = "move down"
    FIRST = "first row"
    LAST = "last row"


class AdapterViewCommand(Enum):
    TOGGLE_POWER = "toggle power"
    TOGGLE_SCAN = "toggle scan"
    TOGGLE_PAIRABLE = "toggle pairable"
    TOGGLE_DISCOVERABLE = "toggle discoverable"
    OPEN_MENU = "open menu"
    OPEN_DEVICES = "open devices"
    INFO = "info"


class DeviceViewCommand(Enum):
    TOGGLE_CONNECT = "toggle connect"
    TOGGLE_TRUST = "toggle trust"
    TOGGLE_BLOCK = "toggle block"
    TOGGLE_SCAN = "toggle scan"
    PAIR = "pair"
    UNPAIR = "unpair"
    OPEN_MENU = "open menu"
    INFO = "info"
    SHOW_ADAPTERS = "show adapters"
    MONITOR = "monitor"


def app_keymap() -> KeyMap[AppCommand]:
    return KeyMap(
        "Global Shortcuts",
        [
            Shortcut(AppCommand.CLOSE_VIEW, ("q", "escape")),
            Shortcut(AppCommand.OPEN_HELP, ("?", "h")),
            Shortcut(AppCommand.REFRESH, ("n",)),
        ],
    )


def table_keymap() -> KeyMap[TableCommand]:
    return KeyMap(
        "Table Navigation",
        [
            Shortcut(TableCommand.UP, ("up", "k")),
            Shortcut(TableCommand.DOWN, ("down", "j")),
            Shortcut(TableCommand.FIRST, ("home", "g")),
            Shortcut(TableCommand.LAST, ("end", "G")),
        ],
    )


def adapter_keymap() -> KeyMap[AdapterViewCommand]:
    return KeyMap(
        "Shortcuts for adapters",
        [
            Shortcut(AdapterViewCommand.TOGGLE_POWER, ("P",)),
            Shortcut(AdapterViewCommand.TOGGLE_DISCOVERABLE, ("d",)),
            Shortcut(AdapterViewCommand.TOGGLE_PAIRABLE, ("p",)),
            Shortcut(AdapterViewCommand.TOGGLE_SCAN, ("s",)),
            Shortcut(AdapterViewCommand.OPEN_MENU, ("m",)),
            Shortcut(AdapterViewCommand.OPEN_DEVICES, ("enter",)),
            Shortcut(AdapterViewCommand.INFO, ("i",)),
        ],
    )


def device_keymap() -> KeyMap[DeviceViewCommand]:
    return KeyMap(
        "Shortcuts for devices",
        [
            Shortcut(DeviceViewCommand.TOGGLE_SCAN, ("s",)),
            Shortcut(DeviceViewCommand.TOGGLE_CONNECT, ("c",)),
            Shortcut(DeviceViewCommand.TOGGLE_BLOCK, ("b",)),
            Shortcut(DeviceViewCommand.TOGGLE_TRUST, ("t",)),
            Shortcut(DeviceViewCommand.PAIR, ("p",)),
            Shortcut(DeviceViewCommand.UNPAIR, ("r",)),
            Shortcut(DeviceViewCommand.OPEN_MENU, ("m", "enter")),
            Shortcut(DeviceViewCommand.INFO, ("i",)),
            Shortcut(DeviceViewCommand.SHOW_ADAPTERS, ("a", " ")),
            Shortcut(DeviceViewCommand.MONITOR, ("M",)),
        ],
    )


def all_keymaps() -> list[KeyMap]:
    return [app_keymap(), table_keymap(), adapter_keymap(), device_keymap()]


def keymap_collisions(keymaps: list[KeyMap] | None = None) -> dict[str, list[str]]:
    """Keys bound to more than one command, mapped to the colliding commands.

    Adapter and device views are never active together, so a key shared only
    between those two scopes is not a collision.
    """
    keymaps = keymaps if keymaps is not None else all_keymaps()
    bound: dict[str, list[tuple[str, str]]] = defaultdict(list)
    for keymap in keymaps:
        for shortcut in keymap.shortcuts:
            for key in shortcut.keys:
                bound[key].append((keymap.title, shortcut.command.value))

    view_scopes = {adapter_keymap().title, device_keymap().title}
    collisions: dict[str, list[str]] = {}
    for key, commands in sorted(bound.items()):
        if len(commands) < 2:
            continue
        scopes = [scope for scope, _ in commands]
        if len(set(scopes)) == len(scopes) and set(scopes) <= view_scopes:
            continue
        collisions[str(Key(key))] = [command for _, command in commands]
    return collisions
