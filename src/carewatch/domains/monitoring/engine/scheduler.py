"""Timer scheduling for simulation ticks and alert-buffer flushes.

Everything runs on one asyncio event loop. Components take a
:class:`Scheduler` so tests can drive time with a fake clock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class ScheduleHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Creates one-shot and recurring timers."""

    def call_later(self, delay_seconds: float, callback: AsyncCallback) -> ScheduleHandle:
        """Run ``callback`` once after ``delay_seconds``."""
        ...

    def call_every(self, interval_seconds: float, callback: AsyncCallback) -> ScheduleHandle:
        """Run ``callback`` every ``interval_seconds``, first run after one interval."""
        ...


class _TimerHandle:
    def __init__(self, timer: asyncio.TimerHandle) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class _LoopHandle:
    def __init__(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()


class AsyncioScheduler:
    """Scheduler on the running asyncio loop.

    Recurring callbacks run strictly one after another per schedule. Cancelling
    a recurring schedule stops future ticks; a tick already in progress is
    shielded and completes.
    """

    def __init__(self) -> None:
        # Strong references so fired callbacks are not garbage collected mid-run
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, callback: AsyncCallback) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._guard(callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guard(callback: AsyncCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled callback failed")

    def call_later(self, delay_seconds: float, callback: AsyncCallback) -> _TimerHandle:
        loop = asyncio.get_running_loop()
        timer = loop.call_later(delay_seconds, self._spawn, callback)
        return _TimerHandle(timer)

    def call_every(self, interval_seconds: float, callback: AsyncCallback) -> _LoopHandle:
        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                await asyncio.shield(self._spawn(callback))

        task = asyncio.get_running_loop().create_task(_loop())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return _LoopHandle(task)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)
