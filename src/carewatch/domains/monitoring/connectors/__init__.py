"""Monitoring connectors — the collaborators the simulation engine depends on.

The engine never touches SQLite or SMTP directly; it calls these interfaces.
Production wiring uses the adapters in :mod:`.stores` and :mod:`.mail`;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from carewatch.core.storage.models import Notification, UserBaseline


@runtime_checkable
class BaselineStore(Protocol):
    """Read access to patient baselines and caregiver contacts."""

    async def get_baseline(self, user_id: str) -> UserBaseline | None:
        """Current profile, or None if the user has not onboarded."""
        ...


@runtime_checkable
class ReadingStore(Protocol):
    """Short-lived time-series storage for generated readings."""

    async def save_reading(self, kind: str, user_id: str, fields: dict[str, Any]) -> str:
        """Persist one reading; returns its id."""
        ...

    async def delete_all(self, kind: str, user_id: str) -> int:
        """Remove every reading of ``kind`` for a user; returns the count."""
        ...

    async def latest(self, kind: str, user_id: str) -> dict[str, Any] | None:
        """Fields of the newest retained reading, or None."""
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """The in-app notification feed."""

    async def add_notification(
        self, user_id: str, title: str, body: str, category: str
    ) -> Notification:
        ...


@runtime_checkable
class MailSender(Protocol):
    """Delivers one email to one recipient.

    Returns False on failure instead of raising, so one bad address never
    blocks the remaining caregivers.
    """

    async def send(self, to: str, subject: str, text: str, html: str) -> bool:
        ...
