"""View frames shown by the dashboard.

Every frame renders a Rich renderable, turns key presses and clicks into Requests and
re-derives its snapshot from the Registry when views are refreshed.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.style import Style
from rich.text import Text

from bluerat.core.model import (
    Adapter,
    AdapterAction,
    AdapterActionKind,
    Device,
    DeviceAction,
    DeviceActionKind,
    DeviceId,
    Position,
)
from bluerat.core.ordering import AdapterOrder, DeviceOrder, sort_devices
from bluerat.core.request import (
    NOOP,
    CloseView,
    ExecAdapterAction,
    ExecDeviceAction,
    MonitorDevice,
    OpenAdapterList,
    OpenAdapterMenu,
    OpenDeviceList,
    OpenDeviceMenu,
    RefreshViews,
    Request,
    chain,
)
from bluerat.ui.keymap import (
    AdapterViewCommand,
    Click,
    DeviceViewCommand,
    Key,
    KeyMap,
    MouseButton,
    TableCommand,
    adapter_keymap,
    all_keymaps,
    device_keymap,
    table_keymap,
)
from bluerat.ui.theme import StyledWidget

if TYPE_CHECKING:
    from bluerat.core.registry import Registry

R = TypeVar("R")

PROJECT_TITLE = "bluerat"


class ViewKind(Enum):
    QUIT = "quit"
    ADAPTERS = "adapters"
    ADAPTER_ACTIONS = "adapter actions"
    DEVICES = "devices"
    DEVICE_ACTIONS = "device actions"
    POPUP = "popup"
    HELP = "help"


class View:
    kind: ViewKind
    floating = False
    anchor: Position | None = None

    def title(self) -> str:
        return PROJECT_TITLE

    def render(self) -> RenderableType:
        return Text("")

    def update(self, key: Key) -> Request:
        return NOOP

    def click(self, click: Click) -> Request:
        return NOOP

    def refresh(self, registry: Registry) -> None:
        return None

    def local(self, position: Position) -> Position:
        """Translate a screen position into this view's own coordinates."""
        origin = self.anchor or Position()
        return Position(x=position.x - origin.x, y=position.y - origin.y)


class QuitView(View):
    kind = ViewKind.QUIT


class SelectableRows(Generic[R]):
    """Rows with a cursor, moved by the table key map."""

    def __init__(self, rows: list[R], selected: int = 0) -> None:
        self._keymap = table_keymap()
        self._rows = rows
        self._selected = 0
        self.selected = selected

    @property
    def rows(self) -> list[R]:
        return self._rows

    @rows.setter
    def rows(self, rows: list[R]) -> None:
        self._rows = rows
        self.selected = self._selected

    @property
    def selected(self) -> int:
        return self._selected

    @selected.setter
    def selected(self, index: int) -> None:
        self._selected = max(0, min(index, len(self._rows) - 1))

    def selected_value(self) -> R | None:
        return self._rows[self._selected] if self._rows else None

    def handle(self, key: Key) -> bool:
        command = self._keymap.get_command(key)
        if command is TableCommand.UP:
            self.selected -= 1
        elif command is TableCommand.DOWN:
            self.selected += 1
        elif command is TableCommand.FIRST:
            self.selected = 0
        elif command is TableCommand.LAST:
            self.selected = len(self._rows) - 1
        else:
            return False
        return True

    def row_at(self, line: int) -> int | None:
        """Index of the row drawn ``line`` lines below the first one."""
        return line if 0 <= line < len(self._rows) else None

    def anchor(self, first_line: int) -> Position:
        """Where a menu for the selected row opens: just below that row."""
        return Position(x=4, y=first_line + self._selected + 1)


class AdapterView(View):
    kind = ViewKind.ADAPTERS
    floating = True

    def __init__(self, registry: Registry, styles: StyledWidget, selected: int = 0) -> None:
        self.styles = styles
        self.keymap = adapter_keymap()
        self.table = SelectableRows(registry.adapters(AdapterOrder.BY_NAME), selected)

    def title(self) -> str:
        return f"{PROJECT_TITLE} - adapters"

    def refresh(self, registry: Registry) -> None:
        self.table.rows = registry.adapters(AdapterOrder.BY_NAME)

    def render(self) -> RenderableType:
        table = self.styles.table(
            "Adapters",
            [("Power", "center"), ("Name", "center"), ("Connections", "center"), ("State", "right")],
        )
        for index, adapter in enumerate(self.table.rows):
            style = self.styles.connected if adapter.connections else None
            if index == self.table.selected:
                style = self.styles.selected
            table.add_row(
                "On" if adapter.powered else "Off",
                adapter.name,
                f"{adapter.connections}/{len(adapter.devices)}",
                ", ".join(adapter.flags()),
                style=style,
            )
        return table

    def update(self, key: Key) -> Request:
        if self.table.handle(key):
            return NOOP
        command = self.keymap.get_command(key)
        adapter = self.table.selected_value()
        if command is None or adapter is None:
            return NOOP

        if command is AdapterViewCommand.TOGGLE_POWER:
            return ExecAdapterAction(adapter, AdapterAction(AdapterActionKind.POWER, not adapter.powered))
        if command is AdapterViewCommand.TOGGLE_SCAN:
            return ExecAdapterAction(adapter, AdapterAction(AdapterActionKind.SCAN, not adapter.scanning))
        if command is AdapterViewCommand.TOGGLE_PAIRABLE:
            return ExecAdapterAction(adapter, AdapterAction(AdapterActionKind.PAIRABLE, not adapter.pairable))
        if command is AdapterViewCommand.TOGGLE_DISCOVERABLE:
            return ExecAdapterAction(
                adapter, AdapterAction(AdapterActionKind.DISCOVERABLE, not adapter.discoverable)
            )
        if command is AdapterViewCommand.OPEN_MENU:
            return OpenAdapterMenu(adapter, self.table.anchor(self.styles.first_row_line()))
        if command is AdapterViewCommand.INFO:
            return ExecAdapterAction(adapter, AdapterAction(AdapterActionKind.INFO))
        if command is AdapterViewCommand.OPEN_DEVICES:
            return chain(CloseView(), OpenDeviceList(adapter))
        return NOOP

    def click(self, click: Click) -> Request:
        position = self.local(click.position)
        row = self.table.row_at(position.y - self.styles.first_row_line())
        if row is None:
            return NOOP
        self.table.selected = row
        adapter = self.table.rows[row]
        if click.button is MouseButton.LEFT:
            return chain(CloseView(), OpenDeviceList(adapter))
        return OpenAdapterMenu(adapter, Position(x=click.position.x, y=click.position.y + 1))


class DeviceView(View):
    kind = ViewKind.DEVICES

    def __init__(self, adapter: Adapter, styles: StyledWidget, selected: int = 0) -> None:
        self.adapter = adapter
        self.styles = styles
        self.keymap = device_keymap()
        self.table = SelectableRows(sort_devices(adapter.devices, DeviceOrder.BY_CONNECTED), selected)

    def title(self) -> str:
        return f"{PROJECT_TITLE} - {self.adapter.name}"

    def refresh(self, registry: Registry) -> None:
        adapter = registry.adapter(self.adapter.id)
        if adapter is None:
            return
        self.adapter = adapter
        self.table.rows = registry.devices(adapter.id, DeviceOrder.BY_CONNECTED)

    def _row_style(self, device: Device) -> Style | None:
        if device.new:
            return self.styles.new_device
        if device.connected:
            return self.styles.connected
        return None

    def render(self) -> RenderableType:
        table = self.styles.table(
            f"Devices on {self.adapter.name}",
            [("Type", "left"), ("Name", "left"), ("State", "right")],
        )
        for index, device in enumerate(self.table.rows):
            style = self.styles.selected if index == self.table.selected else self._row_style(device)
            table.add_row(device.kind, device.alias, ", ".join(device.flags()), style=style)
        return Group(Text(self.adapter.info_line(), style=self.styles.header), table)

    def _device_action(self, device: Device, kind: DeviceActionKind, value: bool = False) -> Request:
        return ExecDeviceAction(self.adapter.id, device.id, DeviceAction(kind, value))

    def update(self, key: Key) -> Request:
        if self.table.handle(key):
            return NOOP
        command = self.keymap.get_command(key)
        if command is None:
            return NOOP

        if command is DeviceViewCommand.SHOW_ADAPTERS:
            return OpenAdapterList()
        if command is DeviceViewCommand.TOGGLE_SCAN:
            return ExecAdapterAction(
                self.adapter, AdapterAction(AdapterActionKind.SCAN, not self.adapter.scanning)
            )

        device = self.table.selected_value()
        if device is None:
            return NOOP
        if command is DeviceViewCommand.TOGGLE_CONNECT:
            return self._device_action(device, DeviceActionKind.CONNECT, not device.connected)
        if command is DeviceViewCommand.TOGGLE_TRUST:
            return self._device_action(device, DeviceActionKind.TRUST, not device.trusted)
        if command is DeviceViewCommand.TOGGLE_BLOCK:
            return self._device_action(device, DeviceActionKind.BLOCK, not device.blocked)
        if command is DeviceViewCommand.PAIR:
            return self._device_action(device, DeviceActionKind.PAIR, True)
        if command is DeviceViewCommand.UNPAIR:
            return self._device_action(device, DeviceActionKind.PAIR, False)
        if command is DeviceViewCommand.INFO:
            return self._device_action(device, DeviceActionKind.INFO)
        if command is DeviceViewCommand.OPEN_MENU:
            return OpenDeviceMenu(self.adapter, device.id, self.table.anchor(self._first_row_line()))
        if command is DeviceViewCommand.MONITOR:
            return MonitorDevice(self.adapter.id, device.id)
        return NOOP

    def _first_row_line(self) -> int:
        # the adapter info line sits above the table
        return 1 + self.styles.first_row_line()

    def click(self, click: Click) -> Request:
        position = self.local(click.position)
        row = self.table.row_at(position.y - self._first_row_line())
        if row is None:
            return NOOP
        self.table.selected = row
        if click.button is MouseButton.RIGHT:
            device = self.table.rows[row]
            return OpenDeviceMenu(self.adapter, device.id, Position(x=click.position.x, y=click.position.y + 1))
        return NOOP


class _ActionsView(View, Generic[R]):
    floating = True

    def __init__(self, title: str, actions: list[R], styles: StyledWidget, anchor: Position) -> None:
        self.menu_title = title
        self.styles = styles
        self.anchor = anchor
        self.table = SelectableRows(actions)

    def render(self) -> RenderableType:
        table = self.styles.table(
            self.menu_title, [("Action", "left"), ("Key", "right")], show_header=False, expand=False
        )
        for index, action in enumerate(self.table.rows):
            style = self.styles.selected if index == self.table.selected else None
            table.add_row(str(action), action.shortcut, style=style)
        return table

    def contains(self, position: Position) -> bool:
        local = self.local(position)
        height = self.styles.table_height(len(self.table.rows), show_header=False)
        return 0 <= local.x < self.styles.width(self.render()) and 0 <= local.y < height

    def execute(self, action: R) -> Request:
        raise NotImplementedError

    def update(self, key: Key) -> Request:
        if self.table.handle(key):
            return NOOP
        if key.name == "r":
            return RefreshViews()
        action = self.table.selected_value()
        if key.name == "enter" and action is not None:
            return chain(CloseView(), self.execute(action))
        return NOOP

    def click(self, click: Click) -> Request:
        if not self.contains(click.position):
            return CloseView()
        line = self.local(click.position).y - self.styles.first_row_line(show_header=False)
        row = self.table.row_at(line)
        if row is None:
            return NOOP
        self.table.selected = row
        return chain(CloseView(), self.execute(self.table.rows[row]))


class AdapterActionsView(_ActionsView[AdapterAction]):
    kind = ViewKind.ADAPTER_ACTIONS

    def __init__(self, adapter: Adapter, actions: list[AdapterAction], styles: StyledWidget, anchor: Position) -> None:
        super().__init__(adapter.name, actions, styles, anchor)
        self.adapter = adapter

    def execute(self, action: AdapterAction) -> Request:
        return ExecAdapterAction(self.adapter, action)


class DeviceActionsView(_ActionsView[DeviceAction]):
    kind = ViewKind.DEVICE_ACTIONS

    def __init__(
        self,
        adapter: Adapter,
        device_id: DeviceId,
        actions: list[DeviceAction],
        styles: StyledWidget,
        anchor: Position,
    ) -> None:
        device = adapter.device(device_id)
        super().__init__(device.alias if device else str(device_id), actions, styles, anchor)
        self.adapter = adapter
        self.device_id = device_id

    def execute(self, action: DeviceAction) -> Request:
        return ExecDeviceAction(self.adapter.id, self.device_id, action)


class HelpView(View):
    kind = ViewKind.HELP

    def __init__(self, styles: StyledWidget, keymaps: list[KeyMap] | None = None) -> None:
        self.styles = styles
        self.keymaps = keymaps if keymaps is not None else all_keymaps()

    def title(self) -> str:
        return f"{PROJECT_TITLE} - help"

    def render(self) -> RenderableType:
        tables = []
        for keymap in self.keymaps:
            table = self.styles.table(keymap.title, [("Command", "left"), ("Keys", "right")])
            for shortcut in keymap.shortcuts:
                table.add_row(shortcut.command.value, shortcut.describe())
            tables.append(table)
        return Columns(tables, equal=True, expand=True)


class PopupView(View):
    kind = ViewKind.POPUP
    floating = True

    def __init__(self, message: str, styles: StyledWidget) -> None:
        self.message = message
        self.styles = styles

    def render(self) -> RenderableType:
        return self.styles.panel(self.message)
