"""Tests for the user, reading and notification repositories."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from carewatch.core.storage.models import Caregiver
from carewatch.core.storage.repository import RepositoryError


class TestUserRepository:
    def test_save_and_get(self, user_repository, baseline_factory):
        saved = user_repository.save(baseline_factory(health_conditions=["Diabetes"]))
        assert saved.created_at
        loaded = user_repository.get("user_1")
        assert loaded is not None
        assert loaded.name == "Margaret Lee"
        assert loaded.normal_bp == "120/80"
        assert loaded.health_conditions == ["Diabetes"]
        assert loaded.caregiver_emails() == ["ann@example.com", "bob@example.com"]
        assert loaded.medications[0].dosage == "10mg"

    def test_get_unknown_returns_none(self, user_repository):
        assert user_repository.get("nobody") is None

    def test_profile_is_encrypted_at_rest(self, user_repository, baseline_factory, health_db):
        user_repository.save(baseline_factory(health_conditions=["COPD"]))
        row = health_db.connection.execute("SELECT profile_enc FROM users").fetchone()
        assert "COPD" not in row["profile_enc"]
        assert "ann@example.com" not in row["profile_enc"]

    def test_update_keeps_created_at(self, user_repository, baseline_factory):
        first = user_repository.save(baseline_factory())
        created = first.created_at
        updated = baseline_factory(caregivers=[Caregiver(name="Cy", email="cy@example.com")])
        user_repository.save(updated)
        loaded = user_repository.get("user_1")
        assert loaded.created_at == created
        assert loaded.caregiver_emails() == ["cy@example.com"]
        assert user_repository.count() == 1

    def test_exists(self, user_repository, saved_baseline):
        assert user_repository.exists("user_1")
        assert not user_repository.exists("user_2")


class TestReadingRepository:
    def test_insert_and_latest(self, reading_repository):
        reading_repository.insert("heartRate", "user_1", {"bpm": 70})
        reading_repository.insert("heartRate", "user_1", {"bpm": 75})
        latest = reading_repository.latest("heartRate", "user_1")
        assert latest is not None
        assert latest.fields == {"bpm": 75}

    def test_blood_pressure_fields(self, reading_repository):
        reading_repository.insert("bloodPressure", "user_1", {"systolic": 130, "diastolic": 85})
        latest = reading_repository.latest("bloodPressure", "user_1")
        assert latest.fields == {"systolic": 130, "diastolic": 85}

    def test_invalid_kind_raises(self, reading_repository):
        with pytest.raises(RepositoryError, match="Invalid reading kind"):
            reading_repository.insert("temperature", "user_1", {"bpm": 1})

    def test_missing_fields_raise(self, reading_repository):
        with pytest.raises(RepositoryError, match="missing fields"):
            reading_repository.insert("bloodPressure", "user_1", {"systolic": 120})

    def test_delete_all_scoped_to_kind_and_user(self, reading_repository):
        reading_repository.insert("heartRate", "user_1", {"bpm": 70})
        reading_repository.insert("heartRate", "user_1", {"bpm": 71})
        reading_repository.insert("spo2", "user_1", {"level": 97})
        reading_repository.insert("heartRate", "user_2", {"bpm": 80})

        assert reading_repository.delete_all("heartRate", "user_1") == 2
        assert reading_repository.count("heartRate", "user_1") == 0
        assert reading_repository.count("spo2", "user_1") == 1
        assert reading_repository.count("heartRate", "user_2") == 1

    def test_expired_readings_hidden_and_purged(self, reading_repository):
        old = (datetime.now(timezone.utc) - timedelta(hours=25)).isoformat()
        reading_repository.insert("spo2", "user_1", {"level": 95}, created_at=old)
        reading_repository.insert("spo2", "user_1", {"level": 97})

        recent = reading_repository.recent("spo2", "user_1")
        assert [r.fields["level"] for r in recent] == [97]

        assert reading_repository.purge_expired() == 1
        assert reading_repository.count() == 1

    def test_latest_none_when_only_expired(self, reading_repository):
        old = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
        reading_repository.insert("heartRate", "user_1", {"bpm": 70}, created_at=old)
        assert reading_repository.latest("heartRate", "user_1") is None


class TestNotificationRepository:
    def test_add_and_list(self, notification_repository):
        notification_repository.add("user_1", "First", "body", "health_report")
        notification_repository.add("user_1", "Second", "body", "emergency_alert")
        items = notification_repository.list_for_user("user_1")
        assert len(items) == 2
        assert {n.title for n in items} == {"First", "Second"}
        assert notification_repository.unread_count("user_1") == 2

    def test_mark_read(self, notification_repository):
        n = notification_repository.add("user_1", "T", "B", "health_report")
        assert notification_repository.mark_read("user_1", n.id)
        assert notification_repository.unread_count("user_1") == 0
        assert notification_repository.list_for_user("user_1", unread_only=True) == []

    def test_mark_read_other_user_fails(self, notification_repository):
        n = notification_repository.add("user_1", "T", "B", "health_report")
        assert not notification_repository.mark_read("user_2", n.id)
        assert notification_repository.unread_count("user_1") == 1
