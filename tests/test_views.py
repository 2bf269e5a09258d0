from __future__ import annotations

import asyncio

from rich.console import Console

from bluerat.core.config import Theme
from bluerat.core.model import (
    Adapter,
    AdapterActionKind,
    AdapterId,
    Device,
    DeviceActionKind,
    DeviceId,
    Position,
    adapter_menu_actions,
)
from bluerat.core.ordering import AdapterOrder
from bluerat.core.registry import Registry
from bluerat.core.request import (
    NOOP,
    Chain,
    CloseView,
    ExecAdapterAction,
    ExecDeviceAction,
    OpenAdapterMenu,
    OpenDeviceList,
    OpenDeviceMenu,
    RefreshViews,
)
from bluerat.ui.keymap import Click, Key, MouseButton
from bluerat.ui.theme import StyledWidget
from bluerat.ui.view_stack import StatusLine, ViewStack
from bluerat.ui.views import AdapterActionsView, AdapterView, DeviceView, HelpView, PopupView, QuitView

from conftest import FakeStack

STYLES = StyledWidget(Theme())


def _text(renderable) -> str:
    console = Console(width=200, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def _adapter() -> Adapter:
    return Adapter(
        id=AdapterId("00:11:00:00:00:00"),
        name="hci0",
        powered=True,
        devices=(
            Device(id=DeviceId("AA:00:00:00:00:01"), alias="Mouse"),
            Device(id=DeviceId("AA:00:00:00:00:02"), alias="Headset", connected=True, battery=42),
        ),
    )


def test_device_view_lists_connected_first_and_renders() -> None:
    view = DeviceView(_adapter(), STYLES)
    assert [d.alias for d in view.table.rows] == ["Headset", "Mouse"]

    text = _text(view.render())
    assert "Headset" in text
    assert "Battery 42%" in text
    assert "Name: hci0" in text


def test_device_view_cursor_is_clamped() -> None:
    view = DeviceView(_adapter(), STYLES)
    for key in ("j", "j", "j"):
        view.update(Key(key))
    assert view.table.selected == 1
    view.update(Key("g"))
    assert view.table.selected == 0


def test_device_view_keys_map_to_requests() -> None:
    view = DeviceView(_adapter(), STYLES)
    request = view.update(Key("c"))
    assert isinstance(request, ExecDeviceAction)
    assert request.action.kind is DeviceActionKind.CONNECT
    assert request.action.value is False

    request = view.update(Key("s"))
    assert isinstance(request, ExecAdapterAction)
    assert request.action.kind is AdapterActionKind.SCAN
    assert request.action.value is True


def test_adapter_view_enter_replaces_itself(stack: FakeStack) -> None:
    registry = Registry(stack)
    asyncio.run(registry.rescan_all())
    view = AdapterView(registry, STYLES)

    request = view.update(Key("enter"))
    assert request == Chain((CloseView(), OpenDeviceList(registry.adapters()[0])))
    assert "hci1" in _text(view.render())


def test_actions_menu() -> None:
    adapter = _adapter()
    anchor = Position(x=4, y=6)
    view = AdapterActionsView(adapter, adapter_menu_actions(adapter), STYLES, anchor)
    assert view.floating
    assert view.anchor == anchor
    assert "Power Off" in _text(view.render())

    assert view.update(Key("r")) == RefreshViews()
    request = view.update(Key("enter"))
    assert isinstance(request, Chain)
    assert request.requests[0] == CloseView()


def test_help_and_popup_render() -> None:
    assert "toggle connect" in _text(HelpView(STYLES).render())
    assert "hello there" in _text(PopupView("hello there", STYLES).render())


def test_view_stack_never_pops_root() -> None:
    views = ViewStack(QuitView())
    views.push(PopupView("x", STYLES))
    views.pop()
    views.pop()
    assert len(views.views) == 1
    assert not views.is_running()


def test_status_line_expiry() -> None:
    now = [0.0]
    status = StatusLine(ttl_s=3.0, clock=lambda: now[0])
    status.show("transient")
    keep = status.show_always("persistent")

    now[0] = 5.0
    status.expire()
    assert status.messages() == ["persistent"]

    status.remove(keep)
    assert status.text() == ""


def test_adapter_view_clicks_on_rows(stack: FakeStack) -> None:
    registry = Registry(stack)
    asyncio.run(registry.rescan_all())
    view = AdapterView(registry, STYLES)
    hci1 = registry.adapters(AdapterOrder.BY_NAME)[1]

    # title, top border, header and separator come first
    assert view.click(Click(MouseButton.LEFT, Position(x=3, y=2))) == NOOP
    assert view.click(Click(MouseButton.LEFT, Position(x=3, y=5))) == Chain((CloseView(), OpenDeviceList(hci1)))
    assert view.table.selected == 1
    assert view.click(Click(MouseButton.RIGHT, Position(x=7, y=4))) == OpenAdapterMenu(
        registry.adapters(AdapterOrder.BY_NAME)[0], Position(x=7, y=5)
    )


def test_device_menu_opens_below_selected_row() -> None:
    view = DeviceView(_adapter(), STYLES)
    view.update(Key("j"))
    request = view.update(Key("m"))
    assert isinstance(request, OpenDeviceMenu)
    assert request.anchor == Position(x=4, y=7)

    request = view.click(Click(MouseButton.RIGHT, Position(x=20, y=5)))
    assert request == OpenDeviceMenu(view.adapter, DeviceId("AA:00:00:00:00:02"), Position(x=20, y=6))
    assert view.table.selected == 0
    assert view.click(Click(MouseButton.LEFT, Position(x=20, y=6))) == NOOP
    assert view.table.selected == 1


def test_actions_menu_clicks() -> None:
    adapter = _adapter()
    view = AdapterActionsView(adapter, adapter_menu_actions(adapter), STYLES, Position(x=10, y=3))

    assert view.click(Click(MouseButton.LEFT, Position(x=2, y=2))) == CloseView()
    assert view.click(Click(MouseButton.RIGHT, Position(x=11, y=3))) == NOOP

    request = view.click(Click(MouseButton.LEFT, Position(x=11, y=6)))
    assert request == Chain((CloseView(), ExecAdapterAction(adapter, view.table.rows[1])))
    assert view.table.selected == 1


def test_borderless_theme_moves_first_row_up() -> None:
    styles = StyledWidget(Theme(borders=False))
    assert styles.first_row_line() == 2
    assert styles.first_row_line(show_header=False) == 1
    assert styles.table_height(3, show_header=False) == 4
