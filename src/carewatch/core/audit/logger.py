"""Audit logger — PHI-free trail of simulations, deletions, and alert dispatches.

User ids are stored as a truncated SHA-256 reference, and dispatch events
record counts and vital kinds only (never readings, names, or addresses).
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from carewatch.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def user_ref(user_id: str) -> str:
    """Stable, non-reversible reference to a user id for audit rows."""
    if not user_id:
        return ""
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:16]


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'simulation_start' | 'simulation_stop' | 'data_delete' | 'alert_dispatch'
    tool_name: str = ""
    user_ref: str = ""
    vital_kind: str | None = None
    status: str = "success"              # 'success' | 'failure' | 'skipped'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and never
    propagates into the operation being audited.

    Usage::

        audit = AuditLogger(db)
        audit.log_dispatch(user_id="u1", path="buffered", vital_kinds=["heartRate"],
                           recipients=2, failed_recipients=0)
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), sort_keys=True)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, user_ref, vital_kind,
                    status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.user_ref or None,
                    event.vital_kind,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event; event lost")
            return ""

        return event_id

    def log_simulation(
        self,
        *,
        action: str,
        user_id: str,
        vital_kind: str,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a simulation start or stop request."""
        return self.log_event(AuditEvent(
            action=action,
            user_ref=user_ref(user_id),
            vital_kind=vital_kind,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        user_id: str = "",
        vital_kind: str | None = None,
        count: int = 0,
    ) -> str:
        """Log a reading deletion or retention purge."""
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            user_ref=user_ref(user_id),
            vital_kind=vital_kind,
            metadata={"records_deleted": count},
        ))

    def log_dispatch(
        self,
        *,
        user_id: str,
        path: str,
        vital_kinds: list[str],
        recipients: int,
        failed_recipients: int,
        guidance_fallback: bool = False,
        status: str = "success",
    ) -> str:
        """Log one alert dispatch (immediate fall path or buffered path)."""
        return self.log_event(AuditEvent(
            action="alert_dispatch",
            user_ref=user_ref(user_id),
            vital_kind=vital_kinds[0] if len(vital_kinds) == 1 else None,
            status=status,
            metadata={
                "path": path,
                "vital_kinds": vital_kinds,
                "recipients": recipients,
                "failed_recipients": failed_recipients,
                "guidance_fallback": guidance_fallback,
            },
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first. ``metadata`` is decoded."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        events = []
        for row in self._db.connection.execute(query, params).fetchall():
            event = dict(row)
            raw = event.pop("metadata_json", None)
            event["metadata"] = json.loads(raw) if raw else {}
            events.append(event)
        return events

    def count_events(self, *, action: str | None = None) -> int:
        """Count audit events, optionally of one action."""
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]
