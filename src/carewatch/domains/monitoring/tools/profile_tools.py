"""MCP tools for onboarding and editing patient profiles."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from carewatch.domains.monitoring.domain_logic.onboarding import (
    ProfileValidationError,
    build_baseline,
    parse_medications,
    replace_caregivers,
)

if TYPE_CHECKING:
    from carewatch.core.storage.models import UserBaseline
    from carewatch.core.storage.repository import UserRepository

logger = logging.getLogger(__name__)


def _profile_view(baseline: UserBaseline) -> dict[str, Any]:
    return {
        "user_id": baseline.user_id,
        "name": baseline.name,
        **baseline.profile_payload(),
        "onboarding_completed": baseline.onboarding_completed,
        "created_at": baseline.created_at,
        "updated_at": baseline.updated_at,
    }


def _not_found(user_id: str) -> str:
    return json.dumps({
        "status": "error",
        "error_type": "UserNotFoundError",
        "message": f"User not found: {user_id}",
    })


def register_profile_tools(mcp: FastMCP, users: UserRepository) -> None:
    """Register onboarding and profile tools on the MCP server."""

    @mcp.tool
    async def complete_onboarding(
        ctx: Context,
        user_id: str,
        name: str,
        age: int,
        gender: str,
        normal_heart_rate: int,
        normal_bp: str,
        normal_spo2: float,
        caregivers: list[dict[str, Any]],
        height: float | None = None,
        weight: float | None = None,
        health_conditions: list[str] | None = None,
        medications: list[dict[str, Any]] | None = None,
    ) -> str:
        """Create or replace a patient's health baseline.

        Args:
            user_id: Stable id for the patient.
            name: Patient name, used in caregiver emails.
            age: Age in years (over 65 shifts simulated heart rate and SpO2).
            gender: Free text.
            normal_heart_rate: Resting heart rate in BPM.
            normal_bp: Usual blood pressure as "systolic/diastolic", e.g. "120/80".
            normal_spo2: Usual blood oxygen saturation in percent.
            caregivers: List of {name, email, phone}; the first is primary and
                needs a name and email.
            height: Optional height in cm.
            weight: Optional weight in kg.
            health_conditions: Free-text conditions, e.g. ["Hypertension"].
            medications: List of {name, dosage, frequency, timing}.
        """
        try:
            baseline = build_baseline(
                user_id=user_id,
                name=name,
                age=age,
                gender=gender,
                normal_heart_rate=normal_heart_rate,
                normal_bp=normal_bp,
                normal_spo2=normal_spo2,
                caregivers=caregivers,
                height=height,
                weight=weight,
                health_conditions=health_conditions,
                medications=medications,
            )
        except ProfileValidationError as exc:
            return json.dumps({"status": "error", "error_type": "validation", "message": str(exc)})

        saved = users.save(baseline)
        return json.dumps({
            "status": "saved",
            "message": "Onboarding completed",
            "profile": _profile_view(saved),
        })

    @mcp.tool
    async def get_profile(ctx: Context, user_id: str) -> str:
        """Return a patient's baseline, conditions, medications and caregivers.

        Args:
            user_id: The patient's user id.
        """
        baseline = users.get(user_id)
        if baseline is None:
            return _not_found(user_id)
        return json.dumps({"status": "ok", "profile": _profile_view(baseline)})

    @mcp.tool
    async def update_caregivers(
        ctx: Context,
        user_id: str,
        caregivers: list[dict[str, Any]],
    ) -> str:
        """Replace the caregiver list. The primary caregiver must remain first.

        Args:
            user_id: The patient's user id.
            caregivers: List of {name, email, phone}.
        """
        baseline = users.get(user_id)
        if baseline is None:
            return _not_found(user_id)
        try:
            replace_caregivers(baseline, caregivers)
        except ProfileValidationError as exc:
            return json.dumps({"status": "error", "error_type": "validation", "message": str(exc)})
        users.save(baseline)
        return json.dumps({
            "status": "saved",
            "caregivers": [c.to_dict() for c in baseline.caregivers],
        })

    @mcp.tool
    async def update_medications(
        ctx: Context,
        user_id: str,
        medications: list[dict[str, Any]],
    ) -> str:
        """Replace the medication list.

        Args:
            user_id: The patient's user id.
            medications: List of {name, dosage, frequency, timing}.
        """
        baseline = users.get(user_id)
        if baseline is None:
            return _not_found(user_id)
        try:
            baseline.medications = parse_medications(medications)
        except ProfileValidationError as exc:
            return json.dumps({"status": "error", "error_type": "validation", "message": str(exc)})
        users.save(baseline)
        return json.dumps({
            "status": "saved",
            "medications": [m.to_dict() for m in baseline.medications],
        })
