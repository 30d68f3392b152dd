"""Data models for the CareWatch persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Caregiver:
    """A person notified about the patient's alerts. The first one is primary."""

    name: str
    email: str
    phone: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


@dataclass
class Medication:
    """A medication the patient takes."""

    name: str
    dosage: str
    frequency: str = ""
    timing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "timing": list(self.timing),
        }


@dataclass
class UserBaseline:
    """A patient's profile and personalized normal vitals.

    Everything except ``user_id``, ``name`` and the bookkeeping fields is
    stored encrypted at rest.
    """

    user_id: str
    name: str
    age: int
    gender: str
    normal_heart_rate: int
    normal_bp: str  # "systolic/diastolic", e.g. "120/80"
    normal_spo2: float
    height: float | None = None
    weight: float | None = None
    health_conditions: list[str] = field(default_factory=list)
    condition_tags: list[str] = field(default_factory=list)
    medications: list[Medication] = field(default_factory=list)
    caregivers: list[Caregiver] = field(default_factory=list)
    onboarding_completed: bool = True
    created_at: str = ""
    updated_at: str = ""

    @property
    def primary_caregiver(self) -> Caregiver | None:
        return self.caregivers[0] if self.caregivers else None

    def caregiver_emails(self) -> list[str]:
        """Non-empty caregiver addresses, primary first."""
        return [c.email for c in self.caregivers if c.email]

    def profile_payload(self) -> dict[str, Any]:
        """The fields that go into the encrypted profile blob."""
        return {
            "age": self.age,
            "gender": self.gender,
            "height": self.height,
            "weight": self.weight,
            "normal_heart_rate": self.normal_heart_rate,
            "normal_bp": self.normal_bp,
            "normal_spo2": self.normal_spo2,
            "health_conditions": list(self.health_conditions),
            "condition_tags": list(self.condition_tags),
            "medications": [m.to_dict() for m in self.medications],
            "caregivers": [c.to_dict() for c in self.caregivers],
        }


@dataclass
class StoredReading:
    """A persisted vital reading row (retained for 24 hours)."""

    id: str
    user_id: str
    kind: str  # 'heartRate', 'bloodPressure', 'spo2', 'fallDetection'
    fields: dict[str, Any]
    created_at: str = ""


@dataclass
class Notification:
    """An entry in a user's in-app notification feed."""

    id: str
    user_id: str
    title: str
    body: str
    category: str  # 'critical_health_condition', 'emergency_alert', 'health_report', ...
    is_read: bool = False
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "category": self.category,
            "is_read": self.is_read,
            "created_at": self.created_at,
        }
