"""Tests for onboarding and profile validation."""

from __future__ import annotations

import pytest

from carewatch.domains.monitoring.domain_logic.onboarding import (
    ProfileValidationError,
    build_baseline,
    parse_caregivers,
    parse_medications,
    replace_caregivers,
)


def _onboarding(**overrides):
    values = {
        "user_id": "user_9",
        "name": "Harold Kim",
        "age": 78,
        "gender": "male",
        "normal_heart_rate": 68,
        "normal_bp": "130 / 85",
        "normal_spo2": 96,
        "caregivers": [{"name": "Jin Kim", "email": "jin@example.com"}],
        "health_conditions": ["Hypertension", "High blood pressure", "COPD", ""],
        "medications": [{"name": "Amlodipine", "dosage": "5mg", "timing": "morning"}],
    }
    values.update(overrides)
    return build_baseline(**values)


class TestBuildBaseline:
    def test_valid(self):
        baseline = _onboarding()
        assert baseline.normal_bp == "130/85"
        assert baseline.health_conditions == ["Hypertension", "High blood pressure", "COPD"]
        assert baseline.condition_tags == ["hypertension", "pulmonary"]
        assert baseline.medications[0].timing == ["morning"]
        assert baseline.primary_caregiver.email == "jin@example.com"

    def test_bad_blood_pressure(self):
        with pytest.raises(ProfileValidationError):
            _onboarding(normal_bp="high")

    @pytest.mark.parametrize(
        "field,value",
        [("age", 0), ("normal_heart_rate", -5), ("normal_spo2", 120), ("name", "  ")],
    )
    def test_invalid_fields(self, field, value):
        with pytest.raises(ProfileValidationError):
            _onboarding(**{field: value})


class TestCaregivers:
    def test_primary_needs_name_and_email(self):
        with pytest.raises(ProfileValidationError, match="Primary caregiver"):
            parse_caregivers([{"name": "Jin"}])
        with pytest.raises(ProfileValidationError):
            parse_caregivers([])

    def test_secondary_email_optional(self):
        caregivers = parse_caregivers([
            {"name": "Jin", "email": "jin@example.com"},
            {"name": "Neighbor", "phone": "555-0100"},
        ])
        assert caregivers[1].email == ""

    def test_invalid_email(self):
        with pytest.raises(ProfileValidationError, match="Invalid caregiver email"):
            parse_caregivers([{"name": "Jin", "email": "not-an-email"}])

    def test_primary_cannot_be_replaced(self, baseline_factory):
        baseline = baseline_factory()
        with pytest.raises(ProfileValidationError, match="primary caregiver"):
            replace_caregivers(baseline, [{"name": "Bob Lee", "email": "bob@example.com"}])

    def test_secondary_caregivers_can_change(self, baseline_factory):
        baseline = baseline_factory()
        replace_caregivers(baseline, [
            {"name": "Ann Lee", "email": "ANN@example.com"},
            {"name": "Cy", "email": "cy@example.com"},
        ])
        assert baseline.caregiver_emails() == ["ANN@example.com", "cy@example.com"]


class TestMedications:
    def test_requires_name_and_dosage(self):
        with pytest.raises(ProfileValidationError, match="name and dosage"):
            parse_medications([{"name": "Metformin"}])

    def test_empty_list(self):
        assert parse_medications([]) == []
