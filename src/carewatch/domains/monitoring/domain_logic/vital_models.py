"""Vital reading types, simulation configuration, and alert records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


# ---------------------------------------------------------------------------
# Vital kinds
# ---------------------------------------------------------------------------

class VitalKind(str, Enum):
    """The four simulated streams. Values match the public simulation type names."""

    HEART_RATE = "heartRate"
    BLOOD_PRESSURE = "bloodPressure"
    SPO2 = "spo2"
    FALL_DETECTION = "fallDetection"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_bufferable(self) -> bool:
        """Falls bypass the alert buffer; every other kind is batched."""
        return self is not VitalKind.FALL_DETECTION

    @classmethod
    def parse(cls, value: str | VitalKind) -> VitalKind:
        """Accept ``heartRate``, ``heart-rate``, ``heart_rate`` and similar spellings.

        Raises:
            ValueError: For an unknown simulation type.
        """
        if isinstance(value, VitalKind):
            return value
        key = str(value).replace("-", "").replace("_", "").replace(" ", "").lower()
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ValueError(f"Invalid simulation type: {value!r}. Valid: {valid}")


_DISPLAY_NAMES = {
    VitalKind.HEART_RATE: "Heart Rate",
    VitalKind.BLOOD_PRESSURE: "Blood Pressure",
    VitalKind.SPO2: "SpO2",
    VitalKind.FALL_DETECTION: "Fall Detection",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Readings (immutable once created)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HeartRateReading:
    user_id: str
    bpm: int
    timestamp: str = field(default_factory=_now_iso)

    kind: ClassVar[VitalKind] = VitalKind.HEART_RATE

    @property
    def value(self) -> int:
        return self.bpm

    def fields(self) -> dict[str, Any]:
        return {"bpm": self.bpm}


@dataclass(frozen=True)
class BloodPressureReading:
    user_id: str
    systolic: int
    diastolic: int
    timestamp: str = field(default_factory=_now_iso)

    kind: ClassVar[VitalKind] = VitalKind.BLOOD_PRESSURE

    @property
    def value(self) -> str:
        return f"{self.systolic}/{self.diastolic}"

    def fields(self) -> dict[str, Any]:
        return {"systolic": self.systolic, "diastolic": self.diastolic}


@dataclass(frozen=True)
class SpO2Reading:
    user_id: str
    level: int
    timestamp: str = field(default_factory=_now_iso)

    kind: ClassVar[VitalKind] = VitalKind.SPO2

    @property
    def value(self) -> int:
        return self.level

    def fields(self) -> dict[str, Any]:
        return {"level": self.level}


FALL_SEVERITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class FallEvent:
    user_id: str
    severity: str  # 'low' | 'medium' | 'high'
    location: str
    timestamp: str = field(default_factory=_now_iso)

    kind: ClassVar[VitalKind] = VitalKind.FALL_DETECTION

    def __post_init__(self) -> None:
        if self.severity not in FALL_SEVERITIES:
            raise ValueError(f"Invalid fall severity: {self.severity!r}")

    @property
    def value(self) -> str:
        return self.severity

    def fields(self) -> dict[str, Any]:
        return {"severity": self.severity, "location": self.location}


VitalReading = Union[HeartRateReading, BloodPressureReading, SpO2Reading, FallEvent]


# ---------------------------------------------------------------------------
# Simulation configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationConfig:
    """Caller-supplied generation parameters for one simulation task.

    ``variance`` drives the heart rate, blood pressure and SpO2 generators;
    ``probability_percent`` is the per-check fall chance.
    """

    period_ms: int
    variance: float = 0.0
    probability_percent: float = 0.0

    def __post_init__(self) -> None:
        if self.period_ms <= 0:
            raise ValueError("period_ms must be positive")
        if self.variance < 0:
            raise ValueError("variance must not be negative")
        if not 0 <= self.probability_percent <= 100:
            raise ValueError("probability_percent must be between 0 and 100")

    @property
    def period_seconds(self) -> float:
        return self.period_ms / 1000.0

    @classmethod
    def defaults_for(cls, kind: VitalKind) -> SimulationConfig:
        return _DEFAULT_CONFIGS[kind]

    @classmethod
    def for_kind(
        cls,
        kind: VitalKind,
        *,
        variance: float | None = None,
        period_ms: int | None = None,
        probability_percent: float | None = None,
    ) -> SimulationConfig:
        """Defaults for ``kind`` with any supplied overrides applied."""
        base = _DEFAULT_CONFIGS[kind]
        return cls(
            period_ms=period_ms if period_ms is not None else base.period_ms,
            variance=variance if variance is not None else base.variance,
            probability_percent=(
                probability_percent
                if probability_percent is not None
                else base.probability_percent
            ),
        )


_DEFAULT_CONFIGS = {
    VitalKind.HEART_RATE: SimulationConfig(period_ms=5_000, variance=10),
    VitalKind.BLOOD_PRESSURE: SimulationConfig(period_ms=10_000, variance=10),
    VitalKind.SPO2: SimulationConfig(period_ms=15_000, variance=2),
    VitalKind.FALL_DETECTION: SimulationConfig(period_ms=60_000, probability_percent=5),
}


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

# Window during which critical vitals for one user are coalesced.
ALERT_BUFFER_DELAY_MS = 30_000


@dataclass(frozen=True)
class AlertRecord:
    """One critical, non-fall reading waiting in a user's alert buffer."""

    user_id: str
    vital_kind: VitalKind
    value: Any
    details: dict[str, Any] = field(default_factory=dict)
    detected_at: str = field(default_factory=_now_iso)

    @classmethod
    def from_reading(cls, reading: VitalReading) -> AlertRecord:
        if not reading.kind.is_bufferable:
            raise ValueError("Fall events are dispatched immediately, never buffered")
        return cls(
            user_id=reading.user_id,
            vital_kind=reading.kind,
            value=reading.value,
            details=reading.fields(),
            detected_at=reading.timestamp,
        )
