"""Validation for onboarding and profile edits."""

from __future__ import annotations

from typing import Any

from carewatch.core.storage.models import Caregiver, Medication, UserBaseline
from carewatch.domains.monitoring.domain_logic.conditions import classify_conditions
from carewatch.domains.monitoring.domain_logic.thresholds import parse_blood_pressure


class ProfileValidationError(ValueError):
    """A profile payload is incomplete or malformed."""


def parse_caregivers(items: list[dict[str, Any]]) -> list[Caregiver]:
    """Caregivers in order. The first one is primary and needs a name and email."""
    caregivers = [
        Caregiver(
            name=str(item.get("name", "")).strip(),
            email=str(item.get("email", "")).strip(),
            phone=str(item.get("phone", "")).strip(),
        )
        for item in items or []
    ]
    if not caregivers or not caregivers[0].name or not caregivers[0].email:
        raise ProfileValidationError("Primary caregiver name and email are required")
    for caregiver in caregivers:
        if caregiver.email and "@" not in caregiver.email:
            raise ProfileValidationError(f"Invalid caregiver email: {caregiver.email!r}")
    return caregivers


def parse_medications(items: list[dict[str, Any]]) -> list[Medication]:
    medications = []
    for item in items or []:
        name = str(item.get("name", "")).strip()
        dosage = str(item.get("dosage", "")).strip()
        if not name or not dosage:
            raise ProfileValidationError("Each medication needs a name and dosage")
        timing = item.get("timing") or []
        if isinstance(timing, str):
            timing = [timing]
        medications.append(
            Medication(
                name=name,
                dosage=dosage,
                frequency=str(item.get("frequency", "")).strip(),
                timing=[str(t) for t in timing],
            )
        )
    return medications


def build_baseline(
    *,
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
) -> UserBaseline:
    """Validate onboarding input and return a baseline with condition tags set."""
    if not user_id or not str(name).strip():
        raise ProfileValidationError("user_id and name are required")
    if age <= 0:
        raise ProfileValidationError("age must be positive")
    if normal_heart_rate <= 0:
        raise ProfileValidationError("normal_heart_rate must be positive")
    if not 0 < normal_spo2 <= 100:
        raise ProfileValidationError("normal_spo2 must be between 0 and 100")
    try:
        parse_blood_pressure(normal_bp)
    except ValueError as exc:
        raise ProfileValidationError(str(exc)) from None

    conditions = [c.strip() for c in health_conditions or [] if c and c.strip()]
    return UserBaseline(
        user_id=user_id,
        name=str(name).strip(),
        age=age,
        gender=gender,
        height=height,
        weight=weight,
        normal_heart_rate=normal_heart_rate,
        normal_bp=normal_bp.replace(" ", ""),
        normal_spo2=normal_spo2,
        health_conditions=conditions,
        condition_tags=sorted(t.value for t in classify_conditions(conditions)),
        medications=parse_medications(medications or []),
        caregivers=parse_caregivers(caregivers),
        onboarding_completed=True,
    )


def replace_caregivers(baseline: UserBaseline, items: list[dict[str, Any]]) -> UserBaseline:
    """Swap in a new caregiver list. The existing primary caregiver must stay first."""
    caregivers = parse_caregivers(items)
    primary = baseline.primary_caregiver
    if primary is not None and caregivers[0].email.lower() != primary.email.lower():
        raise ProfileValidationError("The primary caregiver cannot be removed or reordered")
    baseline.caregivers = caregivers
    return baseline
