"""Repositories for patient profiles, vital readings, and notifications.

Each repository mediates between the dataclasses in
:mod:`carewatch.core.storage.models` and the SQLite tables. Patient profiles
pass through :class:`FieldEncryptor`; readings and notifications do not.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from carewatch.core.storage.database import HealthDatabase
from carewatch.core.storage.encryption import FieldEncryptor
from carewatch.core.storage.models import (
    Caregiver,
    Medication,
    Notification,
    StoredReading,
    UserBaseline,
)

logger = logging.getLogger(__name__)

# Readings expire this long after they are written.
READING_RETENTION = timedelta(hours=24)

# Value columns used by each reading kind.
READING_COLUMNS: dict[str, tuple[str, ...]] = {
    "heartRate": ("bpm",),
    "bloodPressure": ("systolic", "diastolic"),
    "spo2": ("level",),
    "fallDetection": ("severity", "location"),
}


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _new_id() -> str:
    return str(uuid.uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserRepository:
    """Stores :class:`UserBaseline` profiles with the health payload encrypted.

    Usage::

        users = UserRepository(db, encryptor)
        users.save(baseline)
        baseline = users.get("user_123")
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    def save(self, baseline: UserBaseline) -> UserBaseline:
        """Insert or update a profile. Returns the saved profile with timestamps."""
        conn = self._db.connection
        now = _now_iso()
        existing = conn.execute(
            "SELECT created_at FROM users WHERE user_id = ?", (baseline.user_id,)
        ).fetchone()
        created_at = existing["created_at"] if existing else (baseline.created_at or now)

        conn.execute(
            """INSERT INTO users (user_id, name, profile_enc, onboarding_completed, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   name = excluded.name,
                   profile_enc = excluded.profile_enc,
                   onboarding_completed = excluded.onboarding_completed,
                   updated_at = excluded.updated_at""",
            (
                baseline.user_id,
                baseline.name,
                self._enc.encrypt(baseline.profile_payload()),
                int(baseline.onboarding_completed),
                created_at,
                now,
            ),
        )
        conn.commit()
        baseline.created_at = created_at
        baseline.updated_at = now
        logger.info("Saved profile for user %s (%s)", baseline.user_id, "update" if existing else "new")
        return baseline

    def get(self, user_id: str) -> UserBaseline | None:
        """Load and decrypt a profile, or None if the user is unknown."""
        row = self._db.connection.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_baseline(row)

    def exists(self, user_id: str) -> bool:
        row = self._db.connection.execute(
            "SELECT 1 FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row is not None

    def count(self) -> int:
        return self._db.connection.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def _row_to_baseline(self, row: Any) -> UserBaseline:
        profile = self._enc.decrypt(row["profile_enc"]) or {}
        return UserBaseline(
            user_id=row["user_id"],
            name=row["name"],
            age=int(profile.get("age", 0)),
            gender=profile.get("gender", ""),
            height=profile.get("height"),
            weight=profile.get("weight"),
            normal_heart_rate=int(profile.get("normal_heart_rate", 0)),
            normal_bp=profile.get("normal_bp", ""),
            normal_spo2=float(profile.get("normal_spo2", 0)),
            health_conditions=list(profile.get("health_conditions", [])),
            condition_tags=list(profile.get("condition_tags", [])),
            medications=[
                Medication(
                    name=m.get("name", ""),
                    dosage=m.get("dosage", ""),
                    frequency=m.get("frequency", ""),
                    timing=list(m.get("timing", [])),
                )
                for m in profile.get("medications", [])
            ],
            caregivers=[
                Caregiver(name=c.get("name", ""), email=c.get("email", ""), phone=c.get("phone", ""))
                for c in profile.get("caregivers", [])
            ],
            onboarding_completed=bool(row["onboarding_completed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# ---------------------------------------------------------------------------
# Vital readings
# ---------------------------------------------------------------------------

class ReadingRepository:
    """Time-series store for simulated readings with 24 hour retention.

    Rows older than :data:`READING_RETENTION` are invisible to reads and are
    removed by :meth:`purge_expired`.
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    @staticmethod
    def _columns_for(kind: str) -> tuple[str, ...]:
        try:
            return READING_COLUMNS[kind]
        except KeyError:
            raise RepositoryError(
                f"Invalid reading kind: {kind!r}. Valid: {sorted(READING_COLUMNS)}"
            ) from None

    def insert(
        self,
        kind: str,
        user_id: str,
        fields: dict[str, Any],
        *,
        created_at: str | None = None,
    ) -> str:
        """Persist one reading and return its id."""
        columns = self._columns_for(kind)
        missing = [c for c in columns if fields.get(c) is None]
        if missing:
            raise RepositoryError(f"Reading of kind {kind!r} is missing fields: {missing}")

        rid = _new_id()
        # Column names come from READING_COLUMNS, never from caller input.
        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        self._db.connection.execute(
            f"INSERT INTO vital_readings (id, user_id, kind, created_at, {names}) "
            f"VALUES (?, ?, ?, ?, {placeholders})",
            (rid, user_id, kind, created_at or _now_iso(), *(fields[c] for c in columns)),
        )
        self._db.connection.commit()
        return rid

    def delete_all(self, kind: str, user_id: str) -> int:
        """Delete every reading of ``kind`` for a user. Returns the row count."""
        self._columns_for(kind)
        cursor = self._db.connection.execute(
            "DELETE FROM vital_readings WHERE user_id = ? AND kind = ?", (user_id, kind)
        )
        self._db.connection.commit()
        logger.info("Deleted %d %s readings for user %s", cursor.rowcount, kind, user_id)
        return cursor.rowcount

    def latest(
        self, kind: str, user_id: str, *, now: datetime | None = None
    ) -> StoredReading | None:
        """Most recent unexpired reading of ``kind`` for a user."""
        results = self.recent(kind, user_id, limit=1, now=now)
        return results[0] if results else None

    def recent(
        self,
        kind: str,
        user_id: str,
        *,
        limit: int = 20,
        now: datetime | None = None,
    ) -> list[StoredReading]:
        """Unexpired readings of ``kind`` for a user, newest first."""
        columns = self._columns_for(kind)
        rows = self._db.connection.execute(
            """SELECT * FROM vital_readings
               WHERE user_id = ? AND kind = ? AND created_at >= ?
               ORDER BY created_at DESC LIMIT ?""",
            (user_id, kind, self._cutoff(now), limit),
        ).fetchall()
        return [
            StoredReading(
                id=row["id"],
                user_id=row["user_id"],
                kind=row["kind"],
                fields={c: row[c] for c in columns},
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def count(self, kind: str | None = None, user_id: str | None = None) -> int:
        """Count stored rows (expired rows included until purged)."""
        conditions: list[str] = []
        params: list[Any] = []
        if kind:
            conditions.append("kind = ?")
            params.append(kind)
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        return self._db.connection.execute(
            f"SELECT COUNT(*) FROM vital_readings{where}", params
        ).fetchone()[0]

    def purge_expired(self, *, now: datetime | None = None) -> int:
        """Delete readings older than the retention window."""
        cursor = self._db.connection.execute(
            "DELETE FROM vital_readings WHERE created_at < ?", (self._cutoff(now),)
        )
        self._db.connection.commit()
        if cursor.rowcount:
            logger.info("Purged %d expired readings", cursor.rowcount)
        return cursor.rowcount

    @staticmethod
    def _cutoff(now: datetime | None) -> str:
        return ((now or datetime.now(timezone.utc)) - READING_RETENTION).isoformat()


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationRepository:
    """A user's in-app notification feed."""

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def add(self, user_id: str, title: str, body: str, category: str) -> Notification:
        notification = Notification(
            id=_new_id(),
            user_id=user_id,
            title=title,
            body=body,
            category=category,
            created_at=_now_iso(),
        )
        self._db.connection.execute(
            """INSERT INTO notifications (id, user_id, title, body, category, is_read, created_at)
               VALUES (?, ?, ?, ?, ?, 0, ?)""",
            (
                notification.id,
                user_id,
                title,
                body,
                category,
                notification.created_at,
            ),
        )
        self._db.connection.commit()
        logger.info("Added %s notification for user %s", category, user_id)
        return notification

    def list_for_user(
        self, user_id: str, *, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        """Notifications for a user, newest first."""
        query = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            query += " AND is_read = 0"
        query += " ORDER BY created_at DESC LIMIT ?"
        rows = self._db.connection.execute(query, (user_id, limit)).fetchall()
        return [
            Notification(
                id=row["id"],
                user_id=row["user_id"],
                title=row["title"],
                body=row["body"],
                category=row["category"],
                is_read=bool(row["is_read"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one notification read. False if it does not belong to the user."""
        cursor = self._db.connection.execute(
            "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    def unread_count(self, user_id: str) -> int:
        return self._db.connection.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND is_read = 0",
            (user_id,),
        ).fetchone()[0]
