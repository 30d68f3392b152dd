"""Condition-aware synthetic vital generation.

Each reading starts from the patient's personal baseline, adds uniform noise
of the configured variance, then stacks the condition and age offsets from
:mod:`carewatch.domains.monitoring.domain_logic.conditions`.
"""

from __future__ import annotations

import logging
import math
import random

from carewatch.core.storage.models import UserBaseline
from carewatch.domains.monitoring.domain_logic.conditions import (
    condition_adjustment,
    tags_for,
)
from carewatch.domains.monitoring.domain_logic.thresholds import parse_blood_pressure
from carewatch.domains.monitoring.domain_logic.vital_models import (
    BloodPressureReading,
    FallEvent,
    HeartRateReading,
    SimulationConfig,
    SpO2Reading,
    VitalKind,
    VitalReading,
)

logger = logging.getLogger(__name__)

HEART_RATE_RANGE = (40, 180)
SYSTOLIC_RANGE = (90, 200)
DIASTOLIC_RANGE = (50, 120)
SPO2_RANGE = (85, 100)
DIASTOLIC_VARIANCE_FACTOR = 0.8

# Used when a stored baseline BP cannot be parsed
DEFAULT_BP = (120, 80)

FALL_LOCATIONS = (
    "Bedroom",
    "Bathroom",
    "Kitchen",
    "Living Room",
    "Hallway",
    "Stairs",
    "Garden",
)

# Cumulative roll over (severity, percent)
FALL_SEVERITY_WEIGHTS = (("low", 60), ("medium", 30), ("high", 10))


def _round_half_up(value: float) -> int:
    # Halves go up (72.5 -> 73), not to the nearest even integer
    return math.floor(value + 0.5)


def _clamp(value: float, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, _round_half_up(value)))


class ReadingGenerator:
    """Produces one synthetic reading per call.

    Pass a seeded ``random.Random`` for deterministic output.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def generate(
        self,
        kind: VitalKind,
        baseline: UserBaseline,
        config: SimulationConfig,
    ) -> VitalReading | None:
        """Generate a reading for ``kind``. Returns None when a fall roll misses."""
        if kind is VitalKind.HEART_RATE:
            return self.heart_rate(baseline, config.variance)
        if kind is VitalKind.BLOOD_PRESSURE:
            return self.blood_pressure(baseline, config.variance)
        if kind is VitalKind.SPO2:
            return self.spo2(baseline, config.variance)
        return self.fall(baseline.user_id, config.probability_percent)

    def _noise(self, variance: float) -> float:
        if variance <= 0:
            return 0.0
        return self._rng.uniform(-variance, variance)

    def _adjust(self, kind: VitalKind, baseline: UserBaseline) -> float:
        return condition_adjustment(kind, tags_for(baseline), baseline.age, self._rng)

    def heart_rate(self, baseline: UserBaseline, variance: float) -> HeartRateReading:
        kind = VitalKind.HEART_RATE
        value = baseline.normal_heart_rate + self._noise(variance) + self._adjust(kind, baseline)
        return HeartRateReading(user_id=baseline.user_id, bpm=_clamp(value, HEART_RATE_RANGE))

    def blood_pressure(self, baseline: UserBaseline, variance: float) -> BloodPressureReading:
        kind = VitalKind.BLOOD_PRESSURE
        try:
            normal_sys, normal_dia = parse_blood_pressure(baseline.normal_bp)
        except ValueError:
            logger.warning(
                "Unparseable baseline BP %r for user %s; simulating from %d/%d",
                baseline.normal_bp,
                baseline.user_id,
                *DEFAULT_BP,
            )
            normal_sys, normal_dia = DEFAULT_BP

        systolic = normal_sys + self._noise(variance) + self._adjust(kind, baseline)
        diastolic = (
            normal_dia
            + self._noise(variance * DIASTOLIC_VARIANCE_FACTOR)
            + self._adjust(kind, baseline)
        )
        systolic_i = _clamp(systolic, SYSTOLIC_RANGE)
        diastolic_i = _clamp(diastolic, DIASTOLIC_RANGE)
        if systolic_i <= diastolic_i:
            systolic_i = _round_half_up(diastolic_i + 10 + self._rng.uniform(0, 10))

        return BloodPressureReading(
            user_id=baseline.user_id, systolic=systolic_i, diastolic=diastolic_i
        )

    def spo2(self, baseline: UserBaseline, variance: float) -> SpO2Reading:
        kind = VitalKind.SPO2
        value = baseline.normal_spo2 + self._noise(variance) + self._adjust(kind, baseline)
        return SpO2Reading(user_id=baseline.user_id, level=_clamp(value, SPO2_RANGE))

    def fall(self, user_id: str, probability_percent: float) -> FallEvent | None:
        if self._rng.random() * 100 >= probability_percent:
            return None
        location = self._rng.choice(FALL_LOCATIONS)
        return FallEvent(user_id=user_id, severity=self._severity(), location=location)

    def _severity(self) -> str:
        roll = self._rng.random() * 100
        cumulative = 0
        for severity, weight in FALL_SEVERITY_WEIGHTS:
            cumulative += weight
            if roll < cumulative:
                return severity
        return FALL_SEVERITY_WEIGHTS[-1][0]
