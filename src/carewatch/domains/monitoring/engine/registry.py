"""Per-user simulation registry.

Holds at most one recurring task per ``(user_id, vital_kind)``. State is
in memory only and is lost on restart.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from carewatch.domains.monitoring.domain_logic.vital_models import SimulationConfig, VitalKind
from carewatch.domains.monitoring.engine.errors import (
    SimulationAlreadyRunningError,
    SimulationNotRunningError,
    UserNotFoundError,
)

if TYPE_CHECKING:
    from carewatch.domains.monitoring.connectors import BaselineStore, ReadingStore
    from carewatch.domains.monitoring.engine.pipeline import MonitoringPipeline
    from carewatch.domains.monitoring.engine.scheduler import ScheduleHandle, Scheduler

logger = logging.getLogger(__name__)


@dataclass
class SimulationTask:
    """A running simulation for one user and vital kind."""

    user_id: str
    vital_kind: VitalKind
    config: SimulationConfig
    handle: ScheduleHandle | None = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    cycles: int = 0
    stopped: bool = False
    # Serializes the immediate first cycle with the recurring ticks
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "vital_kind": self.vital_kind.value,
            "period_ms": self.config.period_ms,
            "variance": self.config.variance,
            "probability_percent": self.config.probability_percent,
            "started_at": self.started_at,
            "cycles": self.cycles,
        }


class SimulationRegistry:
    """Starts, stops and tracks simulation tasks.

    Usage::

        registry = SimulationRegistry(scheduler, pipeline, baselines, readings)
        await registry.start("user_1", VitalKind.HEART_RATE)
        registry.query_active("user_1")   # {"heartRate": True, ...}
        registry.stop("user_1", VitalKind.HEART_RATE)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        pipeline: MonitoringPipeline,
        baselines: BaselineStore,
        readings: ReadingStore,
    ) -> None:
        self._scheduler = scheduler
        self._pipeline = pipeline
        self._baselines = baselines
        self._readings = readings
        self._tasks: dict[str, dict[VitalKind, SimulationTask]] = {}

    def _get(self, user_id: str, kind: VitalKind) -> SimulationTask | None:
        return self._tasks.get(user_id, {}).get(kind)

    async def start(
        self,
        user_id: str,
        vital_kind: VitalKind | str,
        config: SimulationConfig | None = None,
    ) -> SimulationTask:
        """Start a recurring simulation and run its first cycle immediately.

        Raises:
            SimulationAlreadyRunningError: A task for this key already exists.
            UserNotFoundError: The user has no baseline.
        """
        kind = VitalKind.parse(vital_kind)
        config = config or SimulationConfig.defaults_for(kind)

        if self._get(user_id, kind) is not None:
            raise SimulationAlreadyRunningError(user_id, kind.value)

        baseline = await self._baselines.get_baseline(user_id)
        if baseline is None:
            raise UserNotFoundError(user_id)

        # A concurrent start may have won while the baseline was loading
        if self._get(user_id, kind) is not None:
            raise SimulationAlreadyRunningError(user_id, kind.value)

        task = SimulationTask(user_id=user_id, vital_kind=kind, config=config)
        self._tasks.setdefault(user_id, {})[kind] = task
        task.handle = self._scheduler.call_every(
            config.period_seconds, lambda: self._tick(task)
        )
        logger.info(
            "Started %s simulation for user %s every %dms",
            kind.value,
            user_id,
            config.period_ms,
        )

        await self._tick(task)
        return task

    async def _tick(self, task: SimulationTask) -> None:
        async with task.lock:
            if task.stopped:
                return
            task.cycles += 1
            try:
                await self._pipeline.run_cycle(task.user_id, task.vital_kind, task.config)
            except Exception:
                logger.exception(
                    "Simulation cycle failed for user %s (%s)", task.user_id, task.vital_kind.value
                )

    def stop(self, user_id: str, vital_kind: VitalKind | str) -> SimulationTask:
        """Cancel a running simulation.

        Raises:
            SimulationNotRunningError: No task exists for this key.
        """
        kind = VitalKind.parse(vital_kind)
        user_tasks = self._tasks.get(user_id)
        task = user_tasks.pop(kind, None) if user_tasks else None
        if task is None:
            raise SimulationNotRunningError(user_id, kind.value)

        task.stopped = True
        if task.handle is not None:
            task.handle.cancel()
        if not user_tasks:
            del self._tasks[user_id]
        logger.info("Stopped %s simulation for user %s", kind.value, user_id)
        return task

    def query_active(self, user_id: str) -> dict[str, bool]:
        """Which vital kinds are running for a user. Unknown users get all False."""
        user_tasks = self._tasks.get(user_id, {})
        return {kind.value: kind in user_tasks for kind in VitalKind}

    def tasks_for(self, user_id: str) -> list[SimulationTask]:
        return list(self._tasks.get(user_id, {}).values())

    def has_user(self, user_id: str) -> bool:
        return user_id in self._tasks

    @property
    def active_count(self) -> int:
        return sum(len(t) for t in self._tasks.values())

    async def delete_all_readings(self, user_id: str, vital_kind: VitalKind | str) -> int:
        """Delete stored readings of one kind, whether or not a task is running."""
        kind = VitalKind.parse(vital_kind)
        return await self._readings.delete_all(kind.value, user_id)

    def shutdown(self) -> int:
        """Cancel every task. Returns how many were running."""
        stopped = 0
        for user_tasks in self._tasks.values():
            for task in user_tasks.values():
                task.stopped = True
                if task.handle is not None:
                    task.handle.cancel()
                stopped += 1
        self._tasks.clear()
        if stopped:
            logger.info("Cancelled %d simulation tasks on shutdown", stopped)
        return stopped
