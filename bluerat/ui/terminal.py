"""Textual host for the dashboard: queues key presses and clicks, paints the view stack."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from bluerat.core.config import Config
from bluerat.core.errors import BlueratError
from bluerat.core.model import Position
from bluerat.dashboard import Dashboard
from bluerat.stack.base import BluetoothStack
from bluerat.stack.bluez import BluezStack
from bluerat.ui.keymap import Click, InputEvent, Key, MouseButton
from bluerat.ui.view_stack import ViewStack

LOGGER = logging.getLogger(__name__)

StackFactory = Callable[[], Awaitable[BluetoothStack]]

MOUSE_BUTTONS = {1: MouseButton.LEFT, 3: MouseButton.RIGHT}


class BlueratApp(App[None]):
    CSS = """
    Screen {
        layers: base overlay;
    }

    #body {
        height: 1fr;
    }

    #overlay {
        layer: overlay;
        width: auto;
        max-width: 80%;
    }

    #status {
        dock: bottom;
        height: 1;
    }
    """

    def __init__(self, config: Config | None = None, stack_factory: StackFactory | None = None) -> None:
        super().__init__()
        self.config = config or Config()
        self.stack_factory = stack_factory or BluezStack.connect
        self._keys: deque[InputEvent] = deque()
        self._key_ready = asyncio.Event()

    def compose(self) -> ComposeResult:
        yield Static(id="body")
        yield Static(id="overlay")
        yield Static(id="status")

    def on_mount(self) -> None:
        self.query_one("#overlay", Static).display = False
        self.query_one("#body", Static).styles.overflow_y = "auto" if self.config.theme.scrollbars else "hidden"
        self.run_worker(self._run_dashboard(), name="dashboard", exclusive=True)

    def _queue(self, event: InputEvent) -> None:
        self._keys.append(event)
        self._key_ready.set()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self._queue(Key(event.character if event.is_printable and event.character else event.key))

    def on_mouse_down(self, event: events.MouseDown) -> None:
        event.stop()
        button = MOUSE_BUTTONS.get(event.button)
        if button is not None:
            self._queue(Click(button, Position(x=event.screen_x, y=event.screen_y)))

    async def _run_dashboard(self) -> None:
        try:
            stack = await self.stack_factory()
        except BlueratError as exc:
            LOGGER.error("Cannot reach the Bluetooth stack: %s", exc)
            self.exit(return_code=1, message=f"Error: {exc}")
            return

        try:
            dashboard = Dashboard(stack, self, self.config)
            await dashboard.init()
            await dashboard.run()
        finally:
            stack.disconnect()
        self.exit()

    async def poll(self, timeout_s: float) -> bool:
        if self._keys:
            return True
        self._key_ready.clear()
        try:
            await asyncio.wait_for(self._key_ready.wait(), timeout_s)
        except asyncio.TimeoutError:
            return False
        return bool(self._keys)

    def read(self) -> InputEvent:
        return self._keys.popleft()

    def draw(self, views: ViewStack) -> None:
        current = views.current
        base = views.base()
        self.title = current.title()
        self.query_one("#body", Static).update(base.render())

        overlay = self.query_one("#overlay", Static)
        if current is not base and current.floating:
            anchor = current.anchor
            overlay.styles.offset = (anchor.x, anchor.y) if anchor is not None else (0, 0)
            overlay.update(current.render())
            overlay.display = True
        else:
            overlay.display = False

        self.query_one("#status", Static).update(views.status.text())
