"""MCP tools for controlling vital-sign simulations and their stored readings."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carewatch.domains.monitoring.domain_logic.vital_models import SimulationConfig, VitalKind
from carewatch.domains.monitoring.engine.errors import SimulationError

if TYPE_CHECKING:
    from carewatch.core.audit.logger import AuditLogger
    from carewatch.core.storage.repository import ReadingRepository
    from carewatch.domains.monitoring.engine.registry import SimulationRegistry

logger = logging.getLogger(__name__)


def _error(message: str, error_type: str = "invalid_request") -> str:
    return json.dumps({"status": "error", "error_type": error_type, "message": message})


def register_simulation_tools(
    mcp: FastMCP,
    registry: SimulationRegistry,
    readings: ReadingRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register simulation lifecycle and reading maintenance tools."""

    @mcp.tool
    async def start_simulation(
        ctx: Context,
        user_id: str,
        simulation_type: str,
        variance: float | None = None,
        period_ms: int | None = None,
        probability_percent: float | None = None,
    ) -> str:
        """Start a recurring vital-sign simulation for a user.

        One reading is generated immediately, then one per period. Critical
        readings are batched into a 30 second alert window; falls alert the
        caregivers right away.

        Args:
            user_id: The patient's user id (must have completed onboarding).
            simulation_type: heartRate | bloodPressure | spo2 | fallDetection.
            variance: Noise around the baseline (heart rate, blood pressure, SpO2).
            period_ms: Milliseconds between readings.
            probability_percent: Chance of a fall per check (fallDetection only).
        """
        try:
            kind = VitalKind.parse(simulation_type)
            config = SimulationConfig.for_kind(
                kind,
                variance=variance,
                period_ms=period_ms,
                probability_percent=probability_percent,
            )
        except ValueError as exc:
            return _error(str(exc))

        try:
            task = await registry.start(user_id, kind, config)
        except SimulationError as exc:
            if audit_logger is not None:
                audit_logger.log_simulation(
                    action="simulation_start",
                    user_id=user_id,
                    vital_kind=kind.value,
                    status="failure",
                    error_type=type(exc).__name__,
                )
            return _error(str(exc), type(exc).__name__)

        if audit_logger is not None:
            audit_logger.log_simulation(
                action="simulation_start",
                user_id=user_id,
                vital_kind=kind.value,
                metadata={"period_ms": config.period_ms},
            )
        return json.dumps({
            "status": "started",
            "message": f"{kind.display_name} simulation started",
            "simulation": task.to_dict(),
        })

    @mcp.tool
    async def stop_simulation(
        ctx: Context,
        user_id: str,
        simulation_type: str,
    ) -> str:
        """Stop a running vital-sign simulation.

        Args:
            user_id: The patient's user id.
            simulation_type: heartRate | bloodPressure | spo2 | fallDetection.
        """
        try:
            kind = VitalKind.parse(simulation_type)
        except ValueError as exc:
            return _error(str(exc))

        try:
            task = registry.stop(user_id, kind)
        except SimulationError as exc:
            return _error(str(exc), type(exc).__name__)

        if audit_logger is not None:
            audit_logger.log_simulation(
                action="simulation_stop",
                user_id=user_id,
                vital_kind=kind.value,
                metadata={"cycles": task.cycles},
            )
        return json.dumps({
            "status": "stopped",
            "message": f"{kind.display_name} simulation stopped",
            "cycles": task.cycles,
        })

    @mcp.tool
    async def get_active_simulations(ctx: Context, user_id: str) -> str:
        """Which simulations are running for a user.

        Args:
            user_id: The patient's user id.
        """
        return json.dumps({
            "status": "ok",
            "user_id": user_id,
            "active": registry.query_active(user_id),
            "simulations": [t.to_dict() for t in registry.tasks_for(user_id)],
        })

    @mcp.tool
    async def delete_simulation_data(
        ctx: Context,
        user_id: str,
        simulation_type: str,
    ) -> str:
        """Delete every stored reading of one type for a user.

        Works whether or not the simulation is running.

        Args:
            user_id: The patient's user id.
            simulation_type: heartRate | bloodPressure | spo2 | fallDetection
                (hyphenated forms such as heart-rate are accepted).
        """
        try:
            kind = VitalKind.parse(simulation_type)
        except ValueError as exc:
            return _error(str(exc))

        count = await registry.delete_all_readings(user_id, kind)
        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_simulation_data",
                user_id=user_id,
                vital_kind=kind.value,
                count=count,
            )
        return json.dumps({
            "status": "deleted",
            "message": f"All {kind.display_name} data deleted",
            "records_deleted": count,
        })

    @mcp.tool
    async def purge_expired_readings(ctx: Context) -> str:
        """Remove readings older than the 24 hour retention window."""
        count = readings.purge_expired()
        if audit_logger is not None and count > 0:
            audit_logger.log_data_delete(tool_name="purge_expired_readings", count=count)
        return json.dumps({"status": "purged", "records_deleted": count})
