"""The dashboard loop: poll every event source once per frame, dispatch the result."""

from __future__ import annotations

import logging
from typing import Protocol

from bluerat.core.config import Config
from bluerat.core.errors import BlueratError
from bluerat.core.listeners import Listener, listen_adapter, listen_device, listen_session
from bluerat.core.model import (
    AdapterActionKind,
    AdapterId,
    DeviceActionKind,
    DeviceId,
    adapter_menu_actions,
    device_menu_actions,
)
from bluerat.core.ordering import AdapterOrder
from bluerat.core.registry import Registry
from bluerat.core.request import (
    NOOP,
    Chain,
    CloseView,
    ExecAdapterAction,
    ExecDeviceAction,
    MonitorDevice,
    NoOp,
    OpenAdapterList,
    OpenAdapterMenu,
    OpenDeviceList,
    OpenDeviceMenu,
    OpenHelp,
    OpenPopup,
    RefreshViews,
    RescanAdapter,
    Request,
    chain,
    combine,
    combine_all,
)
from bluerat.core.tasks import Failed, Running, Succeeded, TaskStatus, TaskTracker
from bluerat.stack.base import AdapterEvent, AdapterEventKind, BluetoothStack, DeviceEvent, SessionEvent
from bluerat.ui.keymap import AppCommand, Click, InputEvent, Key, app_keymap
from bluerat.ui.theme import StyledWidget
from bluerat.ui.view_stack import ViewStack
from bluerat.ui.views import (
    AdapterActionsView,
    AdapterView,
    DeviceActionsView,
    DeviceView,
    HelpView,
    PopupView,
    QuitView,
)

LOGGER = logging.getLogger(__name__)

INPUT_POLL_TIMEOUT_S = 0.2
STATUS_TTL_S = 3.0
ANOTHER_ADAPTER_OPERATION = "Another adapter operation is running"
ANOTHER_DEVICE_OPERATION = "Another device operation is running"
DEVICE_NOT_FOUND = "Device not found"


class Terminal(Protocol):
    async def poll(self, timeout_s: float) -> bool:
        """Wait up to ``timeout_s`` for input; report whether any is pending."""

    def read(self) -> InputEvent:
        """Pop the pending key press or click."""

    def draw(self, views: ViewStack) -> None: ...


class Dashboard:
    """Event multiplexer and request dispatcher.

    Sources are polled in a fixed order every frame (terminal input, session
    events, adapter events, device events, task completions) and their
    Requests are combined in that order before being dispatched.
    """

    def __init__(
        self,
        stack: BluetoothStack,
        terminal: Terminal,
        config: Config | None = None,
        *,
        input_timeout_s: float = INPUT_POLL_TIMEOUT_S,
        status_ttl_s: float = STATUS_TTL_S,
    ) -> None:
        self.terminal = terminal
        self.config = config or Config()
        self.styles = StyledWidget(self.config.theme)
        self.input_timeout_s = input_timeout_s
        self.keymap = app_keymap()

        self.registry = Registry(stack)
        self.views = ViewStack(QuitView(), status_ttl_s=status_ttl_s)
        self.adapter_tasks: TaskTracker[AdapterId] = TaskTracker("adapter")
        self.device_tasks: TaskTracker[AdapterId] = TaskTracker("device")

        self.session_events: Listener[SessionEvent] | None = None
        self.adapter_events: Listener[AdapterEvent] | None = None
        self.device_events: Listener[DeviceEvent] | None = None
        self.scanning_adapter: AdapterId | None = None

    async def init(self) -> Dashboard:
        self.session_events = listen_session(self.registry.stack)
        await self.dispatch(RefreshViews())

        adapters = self.registry.adapters(AdapterOrder.BY_CONNECTIONS)
        if adapters:
            await self.dispatch(OpenDeviceList(adapters[0]))
        else:
            await self.dispatch(OpenAdapterList())
        return self

    async def run(self) -> None:
        try:
            while self.views.is_running():
                await self.step()
        finally:
            await self.close()
        LOGGER.info("Dashboard closed")

    async def close(self) -> None:
        """Stop every listener and wait for their tasks to finish."""
        listeners = [self.session_events, self.adapter_events, self.device_events]
        self.session_events = self.adapter_events = self.device_events = None
        self.scanning_adapter = None
        for listener in listeners:
            if listener is not None:
                await listener.close()

    async def step(self) -> None:
        """Run one frame."""
        self.terminal.draw(self.views)

        request = combine_all(
            await self.poll_input(),
            self.poll_session_event(),
            self.poll_adapter_event(),
            self.poll_device_event(),
            self.poll_pending_tasks(),
        )

        self.views.update_status_line()
        await self.dispatch(request)

    def app_update(self, key: Key) -> Request:
        command = self.keymap.get_command(key)
        if command is AppCommand.CLOSE_VIEW:
            return CloseView()
        if command is AppCommand.OPEN_HELP:
            return OpenHelp()
        if command is AppCommand.REFRESH:
            return RefreshViews()
        return NOOP

    async def poll_input(self) -> Request:
        if not await self.terminal.poll(self.input_timeout_s):
            return NOOP
        event = self.terminal.read()
        if isinstance(event, Click):
            return self.views.current.click(event)
        return self.app_update(event).or_else(lambda: self.views.current.update(event))

    def poll_session_event(self) -> Request:
        if self.session_events is None:
            return NOOP
        event = self.session_events.try_recv()
        if event is None:
            return NOOP
        self.views.show_status(str(event))
        return RefreshViews()

    def poll_adapter_event(self) -> Request:
        if self.adapter_events is None:
            return NOOP
        event = self.adapter_events.try_recv()
        if event is None:
            return NOOP
        if event.kind is AdapterEventKind.DEVICE_ADDED and event.address:
            self.registry.mark_new(DeviceId(event.address))
        elif event.kind is AdapterEventKind.DEVICE_REMOVED and event.address:
            self.registry.forget_new(DeviceId(event.address))
        self.views.show_status(str(event))
        return RefreshViews()

    def poll_device_event(self) -> Request:
        if self.device_events is None:
            return NOOP
        event = self.device_events.try_recv()
        if event is None:
            return NOOP
        self.views.show_status(str(event))
        return RefreshViews()

    def _on_task_status(self, status: TaskStatus | None) -> Request:
        if isinstance(status, Succeeded):
            return chain(RescanAdapter(status.value), RefreshViews(full_rescan=False))
        if isinstance(status, Failed):
            self.views.show_status(status.message)
        return NOOP

    def poll_pending_tasks(self) -> Request:
        adapter_request = self._on_task_status(self.adapter_tasks.consume())
        device_request = self._on_task_status(self.device_tasks.consume())
        return combine(adapter_request, device_request)

    def _replace_adapter_listener(
        self,
        listener: Listener[AdapterEvent] | None,
        adapter_id: AdapterId | None = None,
    ) -> None:
        """Swap the discovery listener; the adapter it serves is the one marked scanning."""
        if self.adapter_events is not None:
            self.adapter_events.cancel()
        if self.scanning_adapter is not None:
            self.registry.set_scanning(self.scanning_adapter, False)
        self.adapter_events = listener
        self.scanning_adapter = adapter_id if listener is not None else None
        if self.scanning_adapter is not None:
            self.registry.set_scanning(self.scanning_adapter, True)
        self.views.refresh(self.registry)

    def _replace_device_listener(self, listener: Listener[DeviceEvent] | None) -> None:
        if self.device_events is not None:
            self.device_events.cancel()
        self.device_events = listener

    async def dispatch(self, request: Request) -> None:
        if isinstance(request, Chain):
            for item in request.requests:
                await self.dispatch(item)
            return
        try:
            await self._handle(request)
        except BlueratError as exc:
            LOGGER.warning("Handling %s failed: %s", type(request).__name__, exc)
            self.views.show_status(str(exc))

    async def _handle(self, request: Request) -> None:
        if isinstance(request, NoOp):
            return
        if isinstance(request, CloseView):
            self.views.pop()
        elif isinstance(request, RefreshViews):
            if request.full_rescan:
                await self.registry.rescan_all()
            self.views.refresh(self.registry)
        elif isinstance(request, RescanAdapter):
            await self.registry.rescan_one(request.adapter_id)
        elif isinstance(request, OpenHelp):
            self.views.push(HelpView(self.styles))
        elif isinstance(request, OpenPopup):
            self.views.push(PopupView(request.message, self.styles))
        elif isinstance(request, OpenAdapterList):
            self.views.push(AdapterView(self.registry, self.styles))
        elif isinstance(request, OpenDeviceList):
            self.views.push(DeviceView(request.adapter, self.styles))
        elif isinstance(request, OpenAdapterMenu):
            actions = adapter_menu_actions(request.adapter)
            self.views.push(AdapterActionsView(request.adapter, actions, self.styles, request.anchor))
        elif isinstance(request, OpenDeviceMenu):
            device = request.adapter.device(request.device_id)
            if device is not None:
                actions = device_menu_actions(device)
                self.views.push(
                    DeviceActionsView(request.adapter, request.device_id, actions, self.styles, request.anchor)
                )
        elif isinstance(request, ExecAdapterAction):
            await self._exec_adapter_action(request)
        elif isinstance(request, ExecDeviceAction):
            self._exec_device_action(request)
        elif isinstance(request, MonitorDevice):
            await self._monitor_device(request)
        else:
            raise TypeError(f"Unknown request {request!r}")

    async def _exec_adapter_action(self, request: ExecAdapterAction) -> None:
        adapter, action = request.adapter, request.action

        if action.kind is AdapterActionKind.INFO:
            self.views.push(PopupView(adapter.info_line(), self.styles))
            return

        if action.kind is AdapterActionKind.SCAN:
            self.views.show_status(str(action))
            if not action.value:
                if self.scanning_adapter == adapter.id:
                    self._replace_adapter_listener(None)
                return
            handle = await self.registry.stack_adapter(adapter.id)
            if handle is None:
                self.views.show_status(f"Adapter {adapter.id} not found")
                return
            self._replace_adapter_listener(listen_adapter(handle), adapter.id)
            return

        if isinstance(self.adapter_tasks.poll(), Running):
            self.views.show_status(ANOTHER_ADAPTER_OPERATION)
            return
        status_id = self.views.show_status_always(str(action))
        self.adapter_tasks.execute(
            lambda: self.registry.apply_adapter_action(adapter.id, action),
            lambda: self.views.remove_status(status_id),
        )

    def _exec_device_action(self, request: ExecDeviceAction) -> None:
        adapter_id, device_id, action = request.adapter_id, request.device_id, request.action
        device = self.registry.device(adapter_id, device_id)

        if action.kind is DeviceActionKind.INFO:
            message = device.info_line() if device is not None else DEVICE_NOT_FOUND
            self.views.push(PopupView(message, self.styles))
            return

        if isinstance(self.device_tasks.poll(), Running):
            self.views.show_status(ANOTHER_DEVICE_OPERATION)
            return
        if device is None:
            self.views.show_status(DEVICE_NOT_FOUND)
            return

        if action.kind is DeviceActionKind.CONNECT:
            verb = "Connecting to" if action.value else "Disconnecting from"
            message = f"{verb} {device.alias}"
        else:
            message = f"{action} {device.alias}"
        status_id = self.views.show_status_always(message)
        self.device_tasks.execute(
            lambda: self.registry.apply_device_action(adapter_id, device_id, action),
            lambda: self.views.remove_status(status_id),
        )

    async def _monitor_device(self, request: MonitorDevice) -> None:
        handle = await self.registry.stack_device(request.adapter_id, request.device_id)
        if handle is None:
            self.views.show_status(f"Device {request.device_id} not found")
            return
        device = self.registry.device(request.adapter_id, request.device_id)
        self.views.show_status(f"Monitoring {device.alias if device else request.device_id}")
        self._replace_device_listener(listen_device(handle))
