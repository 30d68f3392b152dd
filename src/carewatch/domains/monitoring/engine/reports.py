"""On-demand AI health report built from the latest retained readings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from carewatch.domains.monitoring.domain_logic.vital_models import VitalKind
from carewatch.domains.monitoring.engine.dispatcher import FALLBACK_GUIDANCE, patient_context
from carewatch.domains.monitoring.engine.errors import UserNotFoundError

if TYPE_CHECKING:
    from carewatch.core.llm.guidance import GuidanceGenerator
    from carewatch.core.storage.models import Notification
    from carewatch.domains.monitoring.connectors import (
        BaselineStore,
        NotificationSink,
        ReadingStore,
    )

logger = logging.getLogger(__name__)

REPORT_TITLE = "AI MEDICAL INSIGHT"
CATEGORY_HEALTH_REPORT = "health_report"

_VITAL_KINDS = (VitalKind.HEART_RATE, VitalKind.BLOOD_PRESSURE, VitalKind.SPO2)


class NoRecentReadingsError(Exception):
    """No heart rate, blood pressure or SpO2 reading is within retention."""


class HealthReporter:
    """Summarizes a patient's current vitals into a ``health_report`` notification."""

    def __init__(
        self,
        baselines: BaselineStore,
        readings: ReadingStore,
        notifications: NotificationSink,
        guidance: GuidanceGenerator,
    ) -> None:
        self._baselines = baselines
        self._readings = readings
        self._notifications = notifications
        self._guidance = guidance

    async def current_vitals(self, user_id: str) -> dict[str, Any]:
        """Latest retained reading per kind (kinds without data are omitted)."""
        vitals: dict[str, Any] = {}
        for kind in (*_VITAL_KINDS, VitalKind.FALL_DETECTION):
            latest = await self._readings.latest(kind.value, user_id)
            if latest is not None:
                vitals[kind.value] = latest
        return vitals

    async def generate(self, user_id: str) -> tuple[Notification, bool]:
        """Create the report notification. Returns it and whether fallback text was used.

        Raises:
            UserNotFoundError: The user has no baseline.
            NoRecentReadingsError: No vital reading is available to report on.
        """
        baseline = await self._baselines.get_baseline(user_id)
        if baseline is None:
            raise UserNotFoundError(user_id)

        vitals = await self.current_vitals(user_id)
        if not any(k.value in vitals for k in _VITAL_KINDS):
            raise NoRecentReadingsError(
                "At least one current heart rate, blood pressure or SpO2 reading is required"
            )

        context = {
            "kind": "health_report",
            "patient": patient_context(baseline),
            "current_vitals": vitals,
        }
        fallback = False
        try:
            result = await self._guidance.generate(context)
            body = result.body.strip() or FALLBACK_GUIDANCE
            fallback = not result.body.strip()
        except Exception as exc:
            logger.warning("Health report guidance failed for user %s: %s", user_id, exc)
            body = FALLBACK_GUIDANCE
            fallback = True

        notification = await self._notifications.add_notification(
            user_id, REPORT_TITLE, body, CATEGORY_HEALTH_REPORT
        )
        logger.info("Health report created for user %s (%d vitals)", user_id, len(vitals))
        return notification, fallback
