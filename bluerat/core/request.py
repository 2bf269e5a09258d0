"""Requests: the intents produced by input, hardware events and task completions.

Each polled source yields one Request per frame. ``combine`` merges them into a
single flat sequence that the dashboard dispatches in order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from bluerat.core.model import (
    Adapter,
    AdapterAction,
    AdapterId,
    DeviceAction,
    DeviceId,
    Position,
)


class Request:
    """Base class of every request variant."""

    def or_else(self, fallback: Callable[[], Request]) -> Request:
        """Return this request, or evaluate ``fallback`` when this is a no-op."""
        if isinstance(self, NoOp):
            return fallback()
        return self


@dataclass(frozen=True)
class NoOp(Request):
    pass


NOOP = NoOp()


@dataclass(frozen=True)
class RefreshViews(Request):
    full_rescan: bool = True


@dataclass(frozen=True)
class RescanAdapter(Request):
    """Re-read one adapter into the registry after a task changed it."""

    adapter_id: AdapterId


@dataclass(frozen=True)
class CloseView(Request):
    pass


@dataclass(frozen=True)
class OpenHelp(Request):
    pass


@dataclass(frozen=True)
class OpenPopup(Request):
    message: str


@dataclass(frozen=True)
class OpenAdapterList(Request):
    pass


@dataclass(frozen=True)
class OpenAdapterMenu(Request):
    adapter: Adapter
    anchor: Position = Position()


@dataclass(frozen=True)
class ExecAdapterAction(Request):
    adapter: Adapter
    action: AdapterAction


@dataclass(frozen=True)
class OpenDeviceList(Request):
    adapter: Adapter


@dataclass(frozen=True)
class OpenDeviceMenu(Request):
    adapter: Adapter
    device_id: DeviceId
    anchor: Position = Position()


@dataclass(frozen=True)
class ExecDeviceAction(Request):
    adapter_id: AdapterId
    device_id: DeviceId
    action: DeviceAction


@dataclass(frozen=True)
class MonitorDevice(Request):
    adapter_id: AdapterId
    device_id: DeviceId


@dataclass(frozen=True)
class Chain(Request):
    requests: tuple[Request, ...]

    def __post_init__(self) -> None:
        if any(isinstance(r, Chain) for r in self.requests):
            raise ValueError("Chain requests must be flat")


def chain(*requests: Request) -> Request:
    """Build the flat request running ``requests`` left to right.

    Nested chains are spliced in place and no-ops are dropped. No elements
    yields ``NOOP`` and a single element is returned unwrapped.
    """
    flat: list[Request] = []
    for request in requests:
        if isinstance(request, Chain):
            flat.extend(request.requests)
        elif not isinstance(request, NoOp):
            flat.append(request)
    if not flat:
        return NOOP
    if len(flat) == 1:
        return flat[0]
    return Chain(tuple(flat))


def combine(first: Request, second: Request) -> Request:
    return chain(first, second)


def combine_all(*requests: Request) -> Request:
    combined: Request = NOOP
    for request in requests:
        combined = combine(combined, request)
    return combined
