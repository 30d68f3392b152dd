"""Criticality rules: personal-baseline deviation plus fixed medical bounds."""

from __future__ import annotations

import logging
from typing import Any

from carewatch.core.storage.models import UserBaseline
from carewatch.domains.monitoring.domain_logic.vital_models import VitalKind, VitalReading

logger = logging.getLogger(__name__)

# Fixed bounds, independent of the patient's baseline
HEART_RATE_LOW = 50                  # bradycardia
HEART_RATE_HIGH = 100                # tachycardia
# Strictly greater than: a reading exactly 30% off the personal normal is not critical
HEART_RATE_MAX_DEVIATION = 0.30      # fraction of the personal normal

SYSTOLIC_HIGH = 140
SYSTOLIC_LOW = 90
DIASTOLIC_HIGH = 90
DIASTOLIC_LOW = 60
SYSTOLIC_MAX_DEVIATION = 20          # mmHg from the personal normal
DIASTOLIC_MAX_DEVIATION = 15

SPO2_LOW = 92
SPO2_MAX_DROP = 3                    # percentage points below the personal normal


def parse_blood_pressure(text: str) -> tuple[int, int]:
    """Parse ``"120/80"`` into ``(120, 80)``.

    Raises:
        ValueError: If the text is not two positive integers separated by ``/``.
    """
    parts = str(text).split("/")
    if len(parts) != 2:
        raise ValueError(f"Blood pressure must look like '120/80', got {text!r}")
    try:
        systolic, diastolic = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        raise ValueError(f"Blood pressure must look like '120/80', got {text!r}") from None
    if systolic <= 0 or diastolic <= 0:
        raise ValueError(f"Blood pressure values must be positive, got {text!r}")
    return systolic, diastolic


def _heart_rate_critical(value: float, baseline: UserBaseline) -> bool:
    normal = baseline.normal_heart_rate
    if normal > 0 and abs(value - normal) / normal > HEART_RATE_MAX_DEVIATION:
        return True
    return value < HEART_RATE_LOW or value > HEART_RATE_HIGH


def _blood_pressure_critical(
    value: Any, baseline: UserBaseline, details: dict[str, Any] | None
) -> bool:
    details = details or {}
    systolic = details.get("systolic", value)
    diastolic = details.get("diastolic")
    if systolic is None or diastolic is None:
        raise ValueError("Blood pressure evaluation needs systolic and diastolic values")

    try:
        normal_sys, normal_dia = parse_blood_pressure(baseline.normal_bp)
    except ValueError:
        logger.warning(
            "Unparseable baseline BP %r for user %s; using fixed bounds only",
            baseline.normal_bp,
            baseline.user_id,
        )
    else:
        if abs(systolic - normal_sys) > SYSTOLIC_MAX_DEVIATION:
            return True
        if abs(diastolic - normal_dia) > DIASTOLIC_MAX_DEVIATION:
            return True

    return (
        systolic > SYSTOLIC_HIGH
        or systolic < SYSTOLIC_LOW
        or diastolic > DIASTOLIC_HIGH
        or diastolic < DIASTOLIC_LOW
    )


def _spo2_critical(value: float, baseline: UserBaseline) -> bool:
    return (baseline.normal_spo2 - value) >= SPO2_MAX_DROP or value < SPO2_LOW


def is_critical(
    vital_kind: VitalKind,
    value: Any,
    baseline: UserBaseline,
    details: dict[str, Any] | None = None,
) -> bool:
    """Decide whether a reading warrants a caregiver alert.

    For blood pressure, ``value`` is the systolic reading and ``details``
    carries ``systolic`` and ``diastolic``.

    Raises:
        ValueError: For fall events, which have no criticality concept.
    """
    if vital_kind is VitalKind.HEART_RATE:
        return _heart_rate_critical(value, baseline)
    if vital_kind is VitalKind.BLOOD_PRESSURE:
        return _blood_pressure_critical(value, baseline, details)
    if vital_kind is VitalKind.SPO2:
        return _spo2_critical(value, baseline)
    raise ValueError(f"No criticality rule for {vital_kind.value}; falls always escalate")


def evaluate_reading(reading: VitalReading, baseline: UserBaseline) -> bool:
    """:func:`is_critical` applied to a reading object."""
    fields = reading.fields()
    if reading.kind is VitalKind.BLOOD_PRESSURE:
        return is_critical(reading.kind, fields["systolic"], baseline, fields)
    return is_critical(reading.kind, reading.value, baseline, fields)
