"""Critical alert buffer — coalesces a user's critical vitals into one dispatch.

Per user the buffer is either empty or buffering. The first critical reading
opens a fixed window; further readings of *other* vital kinds join it, and a
repeat of a kind already waiting is dropped. When the window closes the whole
batch is handed to the flush callback exactly once and the entry disappears.
The timer is never extended by later arrivals.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from carewatch.domains.monitoring.domain_logic.vital_models import (
    ALERT_BUFFER_DELAY_MS,
    AlertRecord,
)
from carewatch.domains.monitoring.engine.scheduler import ScheduleHandle, Scheduler

logger = logging.getLogger(__name__)

FlushCallback = Callable[[str, list[AlertRecord]], Awaitable[None]]


@dataclass
class _BufferEntry:
    alerts: list[AlertRecord] = field(default_factory=list)
    timer: ScheduleHandle | None = None

    def has_kind(self, alert: AlertRecord) -> bool:
        return any(a.vital_kind is alert.vital_kind for a in self.alerts)


class CriticalAlertBuffer:
    """Per-user, time-windowed accumulator for critical non-fall alerts."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_flush: FlushCallback,
        delay_ms: int = ALERT_BUFFER_DELAY_MS,
    ) -> None:
        self._scheduler = scheduler
        self._on_flush = on_flush
        self._delay_seconds = delay_ms / 1000.0
        self._entries: dict[str, _BufferEntry] = {}

    def add(self, alert: AlertRecord) -> bool:
        """Buffer an alert. Returns False if it was dropped as a duplicate kind."""
        if not alert.vital_kind.is_bufferable:
            raise ValueError("Fall events bypass the alert buffer")

        user_id = alert.user_id
        entry = self._entries.get(user_id)
        if entry is None:
            entry = _BufferEntry(alerts=[alert])
            self._entries[user_id] = entry
            entry.timer = self._scheduler.call_later(
                self._delay_seconds, lambda: self._flush(user_id)
            )
            logger.info(
                "Opened alert window for user %s with %s (%.0fs)",
                user_id,
                alert.vital_kind.value,
                self._delay_seconds,
            )
            return True

        if entry.has_kind(alert):
            logger.debug(
                "Dropped duplicate %s alert for user %s", alert.vital_kind.value, user_id
            )
            return False

        entry.alerts.append(alert)
        logger.info(
            "Added %s alert to open window for user %s (%d pending)",
            alert.vital_kind.value,
            user_id,
            len(entry.alerts),
        )
        return True

    async def _flush(self, user_id: str) -> None:
        entry = self._entries.pop(user_id, None)
        if entry is None or not entry.alerts:
            return
        try:
            await self._on_flush(user_id, list(entry.alerts))
        except Exception:
            logger.exception("Alert dispatch failed for user %s", user_id)

    def pending(self, user_id: str) -> list[AlertRecord]:
        """Alerts currently waiting for ``user_id`` (a copy)."""
        entry = self._entries.get(user_id)
        return list(entry.alerts) if entry else []

    def is_buffering(self, user_id: str) -> bool:
        return user_id in self._entries

    def cancel_all(self) -> int:
        """Drop every open window without dispatching. Returns the number dropped."""
        dropped = 0
        for user_id, entry in list(self._entries.items()):
            if entry.timer is not None:
                entry.timer.cancel()
            dropped += len(entry.alerts)
            logger.warning(
                "Discarding %d undispatched alerts for user %s", len(entry.alerts), user_id
            )
        self._entries.clear()
        return dropped
