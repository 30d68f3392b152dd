"""MCP tools for the in-app notification feed, AI health reports and the audit trail."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carewatch.domains.monitoring.engine.errors import UserNotFoundError
from carewatch.domains.monitoring.engine.reports import NoRecentReadingsError

if TYPE_CHECKING:
    from carewatch.core.audit.logger import AuditLogger
    from carewatch.core.storage.repository import NotificationRepository
    from carewatch.domains.monitoring.engine.reports import HealthReporter

logger = logging.getLogger(__name__)


def register_notification_tools(
    mcp: FastMCP,
    notifications: NotificationRepository,
    reporter: HealthReporter,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register notification feed, report and audit tools."""

    @mcp.tool
    async def list_notifications(
        ctx: Context,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> str:
        """List a user's notifications, newest first.

        Args:
            user_id: The patient's user id.
            unread_only: Only return unread notifications.
            limit: Maximum number to return (1-200).
        """
        limit = max(1, min(limit, 200))
        items = notifications.list_for_user(user_id, unread_only=unread_only, limit=limit)
        return json.dumps({
            "status": "ok",
            "unread_count": notifications.unread_count(user_id),
            "notifications": [n.to_dict() for n in items],
        })

    @mcp.tool
    async def mark_notification_read(
        ctx: Context,
        user_id: str,
        notification_id: str,
    ) -> str:
        """Mark one notification as read.

        Args:
            user_id: The patient's user id.
            notification_id: Id from list_notifications.
        """
        if not notifications.mark_read(user_id, notification_id):
            return json.dumps({
                "status": "not_found",
                "message": "No notification with that id for this user.",
            })
        return json.dumps({
            "status": "ok",
            "unread_count": notifications.unread_count(user_id),
        })

    @mcp.tool
    async def generate_health_report(ctx: Context, user_id: str) -> str:
        """Summarize the latest readings into an AI medical insight notification.

        Needs at least one heart rate, blood pressure or SpO2 reading from the
        last 24 hours.

        Args:
            user_id: The patient's user id.
        """
        try:
            notification, fallback = await reporter.generate(user_id)
        except UserNotFoundError as exc:
            return json.dumps({"status": "error", "error_type": "UserNotFoundError", "message": str(exc)})
        except NoRecentReadingsError as exc:
            return json.dumps({"status": "error", "error_type": "no_readings", "message": str(exc)})

        return json.dumps({
            "status": "ok",
            "message": "Medical insights generated and notification added",
            "guidance_fallback": fallback,
            "notification": notification.to_dict(),
        })

    if audit_logger is None:
        return

    @mcp.tool
    async def audit_summary(ctx: Context, days: int = 7, action: str = "") -> str:
        """Recent simulation, deletion and alert dispatch events.

        The trail holds no readings, names or addresses; users appear only as
        hashed references.

        Args:
            days: Number of days to look back (default: 7).
            action: Optional filter: simulation_start | simulation_stop |
                data_delete | alert_dispatch.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        events = audit_logger.get_events(action=action or None, since=since, limit=50)
        return json.dumps({
            "status": "ok",
            "period_days": days,
            "events": [
                {
                    "timestamp": e.get("timestamp"),
                    "action": e.get("action"),
                    "tool_name": e.get("tool_name"),
                    "vital_kind": e.get("vital_kind"),
                    "status": e.get("status"),
                    "metadata": e.get("metadata"),
                }
                for e in events
            ],
        }, indent=2)
