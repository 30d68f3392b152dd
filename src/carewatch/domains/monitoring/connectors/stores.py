"""SQLite-backed connectors over the CareWatch repositories."""

from __future__ import annotations

import logging
from typing import Any

from carewatch.core.storage.models import Notification, UserBaseline
from carewatch.core.storage.repository import (
    NotificationRepository,
    ReadingRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class SQLiteBaselineStore:
    """BaselineStore backed by :class:`UserRepository`.

    Every call reads the current row, so profile edits are visible to the
    next simulation tick.
    """

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def get_baseline(self, user_id: str) -> UserBaseline | None:
        return self._users.get(user_id)


class SQLiteReadingStore:
    """ReadingStore backed by :class:`ReadingRepository`."""

    def __init__(self, readings: ReadingRepository) -> None:
        self._readings = readings

    async def save_reading(self, kind: str, user_id: str, fields: dict[str, Any]) -> str:
        return self._readings.insert(kind, user_id, fields)

    async def delete_all(self, kind: str, user_id: str) -> int:
        return self._readings.delete_all(kind, user_id)

    async def latest(self, kind: str, user_id: str) -> dict[str, Any] | None:
        reading = self._readings.latest(kind, user_id)
        if reading is None:
            return None
        return {**reading.fields, "recorded_at": reading.created_at}


class SQLiteNotificationSink:
    """NotificationSink backed by :class:`NotificationRepository`."""

    def __init__(self, notifications: NotificationRepository) -> None:
        self._notifications = notifications

    async def add_notification(
        self, user_id: str, title: str, body: str, category: str
    ) -> Notification:
        return self._notifications.add(user_id, title, body, category)
