"""The stack of open views and the status line drawn below them."""

from __future__ import annotations

import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass

from bluerat.core.registry import Registry
from bluerat.ui.views import View, ViewKind

StatusId = int


@dataclass(frozen=True)
class StatusEntry:
    message: str
    expires_at: float | None


class StatusLine:
    """Transient messages expire after ``ttl_s``; persistent ones until removed."""

    def __init__(self, ttl_s: float = 3.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._ids = itertools.count(1)
        self._entries: dict[StatusId, StatusEntry] = {}

    def show(self, message: str) -> StatusId:
        status_id = next(self._ids)
        self._entries[status_id] = StatusEntry(message, self._clock() + self.ttl_s)
        return status_id

    def show_always(self, message: str) -> StatusId:
        status_id = next(self._ids)
        self._entries[status_id] = StatusEntry(message, None)
        return status_id

    def remove(self, status_id: StatusId) -> None:
        self._entries.pop(status_id, None)

    def expire(self) -> None:
        now = self._clock()
        self._entries = {
            status_id: entry
            for status_id, entry in self._entries.items()
            if entry.expires_at is None or entry.expires_at > now
        }

    def messages(self) -> list[str]:
        return [entry.message for _, entry in sorted(self._entries.items())]

    def text(self) -> str:
        return " | ".join(self.messages())


class ViewStack:
    def __init__(
        self,
        root: View,
        *,
        status_ttl_s: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._views: list[View] = [root]
        self.status = StatusLine(status_ttl_s, clock)

    @property
    def current(self) -> View:
        return self._views[-1]

    @property
    def views(self) -> tuple[View, ...]:
        return tuple(self._views)

    def base(self) -> View:
        """Top-most view that is not floating; floating views draw over it."""
        for view in reversed(self._views):
            if not view.floating:
                return view
        return self._views[0]

    def is_running(self) -> bool:
        return self.current.kind is not ViewKind.QUIT

    def push(self, view: View) -> None:
        self._views.append(view)

    def pop(self) -> None:
        if len(self._views) > 1:
            self._views.pop()

    def refresh(self, registry: Registry) -> None:
        for view in self._views:
            view.refresh(registry)

    def show_status(self, message: str) -> StatusId:
        return self.status.show(message)

    def show_status_always(self, message: str) -> StatusId:
        return self.status.show_always(message)

    def remove_status(self, status_id: StatusId) -> None:
        self.status.remove(status_id)

    def update_status_line(self) -> None:
        self.status.expire()
