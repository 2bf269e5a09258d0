"""Single-flight background actions with a pollable completion channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from bluerat.core.errors import BlueratError

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal error"


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Running:
    pass


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class Succeeded(Generic[T]):
    value: T


IDLE = Idle()
RUNNING = Running()

TaskStatus = Union[Idle, Running, Failed, Succeeded]


async def _run_to_completion(
    work: Callable[[], Awaitable[T]],
    result: asyncio.Future[TaskStatus],
    on_complete: Callable[[], None],
) -> None:
    try:
        try:
            value = await work()
        except BlueratError as exc:
            outcome: TaskStatus = Failed(str(exc))
        else:
            outcome = Succeeded(value)
        if not result.done():
            result.set_result(outcome)
    finally:
        on_complete()


class TaskTracker(Generic[T]):
    """Runs at most one background action at a time and reports its outcome.

    ``poll`` never blocks. A resolved task frees the slot immediately, so the
    next ``execute`` is accepted, while ``poll`` keeps reporting the terminal
    status until that happens.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: asyncio.Task[None] | None = None
        self._result: asyncio.Future[TaskStatus] | None = None
        self._status: TaskStatus = IDLE
        self._reported = True

    def execute(
        self,
        work: Callable[[], Awaitable[T]],
        on_complete: Callable[[], None],
    ) -> asyncio.Task[None] | None:
        if self._result is not None:
            LOGGER.warning("Refusing %s action: another one is still registered", self.name)
            return None

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self._status = RUNNING
        self._reported = False
        self._task = loop.create_task(
            _run_to_completion(work, self._result, on_complete),
            name=f"bluerat-{self.name}-action",
        )
        LOGGER.debug("Started %s action", self.name)
        return self._task

    def poll(self) -> TaskStatus:
        result, task = self._result, self._task
        if result is None or task is None:
            return self._status

        if result.done():
            outcome = Failed(INTERNAL_ERROR) if result.cancelled() else result.result()
        elif task.done():
            self._log_lost_task(task)
            outcome = Failed(INTERNAL_ERROR)
        else:
            return RUNNING

        self._result = None
        self._task = None
        self._status = outcome
        if isinstance(outcome, Failed):
            LOGGER.info("%s action failed: %s", self.name.capitalize(), outcome.message)
        else:
            LOGGER.info("%s action succeeded", self.name.capitalize())
        return outcome

    def consume(self) -> TaskStatus | None:
        """Return a terminal status once per task, otherwise ``None``."""
        status = self.poll()
        if isinstance(status, (Failed, Succeeded)) and not self._reported:
            self._reported = True
            return status
        return None

    def _log_lost_task(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            LOGGER.error("%s action was cancelled before reporting", self.name)
            return
        exc = task.exception()
        LOGGER.error(
            "%s action ended without reporting",
            self.name,
            exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
        )
