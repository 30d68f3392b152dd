"""One monitoring cycle: generate, persist, evaluate, route."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from carewatch.domains.monitoring.domain_logic.generator import ReadingGenerator
from carewatch.domains.monitoring.domain_logic.thresholds import evaluate_reading
from carewatch.domains.monitoring.domain_logic.vital_models import (
    AlertRecord,
    FallEvent,
    SimulationConfig,
    VitalKind,
    VitalReading,
)

if TYPE_CHECKING:
    from carewatch.domains.monitoring.connectors import BaselineStore, ReadingStore
    from carewatch.domains.monitoring.engine.alert_buffer import CriticalAlertBuffer
    from carewatch.domains.monitoring.engine.dispatcher import AlertDispatcher

logger = logging.getLogger(__name__)


class MonitoringPipeline:
    """Runs a single generate, persist, evaluate, route pass for one vital stream.

    Falls go straight to the dispatcher's immediate path; critical readings of
    any other kind are handed to the alert buffer. Persistence and criticality
    are independent: a reading that fails to save is still evaluated.
    """

    def __init__(
        self,
        baselines: BaselineStore,
        readings: ReadingStore,
        buffer: CriticalAlertBuffer,
        dispatcher: AlertDispatcher,
        generator: ReadingGenerator | None = None,
    ) -> None:
        self._baselines = baselines
        self._readings = readings
        self._buffer = buffer
        self._dispatcher = dispatcher
        self._generator = generator or ReadingGenerator()

    async def run_cycle(
        self, user_id: str, kind: VitalKind, config: SimulationConfig
    ) -> VitalReading | None:
        """Run one cycle. Returns the generated reading (None for no fall or no user)."""
        # Fresh baseline every tick so profile edits apply without a restart
        baseline = await self._baselines.get_baseline(user_id)
        if baseline is None:
            logger.warning("Baseline for user %s disappeared; skipping %s tick", user_id, kind.value)
            return None

        reading = self._generator.generate(kind, baseline, config)
        if reading is None:
            return None

        try:
            await self._readings.save_reading(kind.value, user_id, reading.fields())
        except Exception:
            logger.exception("Failed to persist %s reading for user %s", kind.value, user_id)

        if isinstance(reading, FallEvent):
            logger.warning(
                "Fall detected for user %s: %s severity in %s",
                user_id,
                reading.severity,
                reading.location,
            )
            await self._dispatcher.dispatch_fall(user_id, reading)
            return reading

        if evaluate_reading(reading, baseline):
            logger.info("Critical %s reading for user %s: %s", kind.value, user_id, reading.value)
            self._buffer.add(AlertRecord.from_reading(reading))
        else:
            logger.debug("%s reading for user %s: %s", kind.value, user_id, reading.value)
        return reading
