"""Tests for the alert dispatcher's immediate and buffered paths."""

from __future__ import annotations

import asyncio

import pytest

from carewatch.core.storage.models import Caregiver
from carewatch.domains.monitoring.domain_logic.vital_models import (
    AlertRecord,
    FallEvent,
    VitalKind,
)
from carewatch.domains.monitoring.engine.dispatcher import (
    CATEGORY_CRITICAL,
    CATEGORY_EMERGENCY,
    FALLBACK_GUIDANCE,
    AlertDispatcher,
    describe_alert,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _hr(value=115):
    return AlertRecord(user_id="user_1", vital_kind=VitalKind.HEART_RATE, value=value, details={"bpm": value})


def _spo2(value=90):
    return AlertRecord(user_id="user_1", vital_kind=VitalKind.SPO2, value=value, details={"level": value})


def _bp(systolic=160, diastolic=95):
    return AlertRecord(
        user_id="user_1",
        vital_kind=VitalKind.BLOOD_PRESSURE,
        value=f"{systolic}/{diastolic}",
        details={"systolic": systolic, "diastolic": diastolic},
    )


@pytest.fixture
def dispatcher(baseline_store, notification_sink, mail_sender, guidance, audit_logger):
    return AlertDispatcher(
        baseline_store,
        notification_sink,
        mail_sender,
        guidance,
        audit=audit_logger,
        system_name="CareWatch Test System",
    )


class TestBufferedPath:
    def test_single_alert(self, dispatcher, saved_baseline, mail_sender, notification_repository):
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr()]))

        assert result.delivered
        assert result.title == "CRITICAL: Heart Rate Alert"
        notes = notification_repository.list_for_user("user_1")
        assert len(notes) == 1
        assert notes[0].category == CATEGORY_CRITICAL
        assert "115 BPM (Tachycardia)" in notes[0].body
        assert "call their doctor" in notes[0].body

        assert [m.to for m in mail_sender.sent] == ["ann@example.com", "bob@example.com"]
        mail = mail_sender.sent[0]
        assert mail.subject == (
            "ALERT: Critical Heart Rate Reading for Patient Margaret Lee (ID: user_1)"
        )
        assert "This is an automated message from CareWatch Test System." in mail.text
        assert "<li>" in mail.html

    def test_multiple_alerts_one_notification(
        self, dispatcher, saved_baseline, guidance, mail_sender, notification_repository
    ):
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr(), _spo2(), _bp()]))

        assert result.title == "CRITICAL: Multiple Health Alerts"
        assert len(notification_repository.list_for_user("user_1")) == 1
        assert len(guidance.contexts) == 1
        assert [a["vital"] for a in guidance.contexts[0]["alerts"]] == [
            "Heart Rate", "SpO2", "Blood Pressure",
        ]
        text = mail_sender.sent[0].text
        assert "Blood Oxygen Level: 90%" in text
        assert "Blood Pressure: 160/95 mmHg (high systolic, high diastolic)" in text
        assert len(mail_sender.sent) == 2

    def test_guidance_failure_uses_fallback(
        self, baseline_store, notification_sink, mail_sender, failing_guidance,
        saved_baseline, notification_repository,
    ):
        dispatcher = AlertDispatcher(baseline_store, notification_sink, mail_sender, failing_guidance)
        result = _run(dispatcher.dispatch_buffered("user_1", [_spo2()]))

        assert result.delivered
        assert result.guidance_fallback
        assert FALLBACK_GUIDANCE in notification_repository.list_for_user("user_1")[0].body
        assert FALLBACK_GUIDANCE in mail_sender.sent[0].text

    def test_empty_guidance_uses_fallback(
        self, baseline_store, notification_sink, mail_sender, guidance_factory, saved_baseline,
    ):
        dispatcher = AlertDispatcher(
            baseline_store, notification_sink, mail_sender, guidance_factory(body="  ")
        )
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr()]))
        assert result.guidance_fallback

    def test_one_failed_recipient_does_not_block_others(
        self, baseline_store, notification_sink, guidance, saved_baseline, mail_sender_factory,
    ):
        mail = mail_sender_factory(fail_for={"ann@example.com"})
        dispatcher = AlertDispatcher(baseline_store, notification_sink, mail, guidance)
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr()]))

        assert mail.attempts == ["ann@example.com", "bob@example.com"]
        assert [m.to for m in mail.sent] == ["bob@example.com"]
        assert result.failed_recipients == ["ann@example.com"]
        assert result.delivered

    def test_raising_mail_sender_is_contained(
        self, baseline_store, notification_sink, guidance, saved_baseline, mail_sender_factory,
    ):
        mail = mail_sender_factory(raise_for={"ann@example.com"})
        dispatcher = AlertDispatcher(baseline_store, notification_sink, mail, guidance)
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr()]))
        assert [m.to for m in mail.sent] == ["bob@example.com"]
        assert result.failed_recipients == ["ann@example.com"]

    def test_unknown_user_is_noop(self, dispatcher, mail_sender, notification_repository):
        result = _run(dispatcher.dispatch_buffered("ghost", [_hr()]))
        assert not result.delivered
        assert result.reason == "user_not_found"
        assert mail_sender.sent == []
        assert notification_repository.list_for_user("ghost") == []

    def test_no_caregiver_emails_is_noop(
        self, dispatcher, user_repository, baseline_factory, mail_sender, notification_repository,
    ):
        user_repository.save(baseline_factory(caregivers=[Caregiver(name="Phone only", email="")]))
        result = _run(dispatcher.dispatch_buffered("user_1", [_hr()]))
        assert result.reason == "no_caregivers"
        assert notification_repository.list_for_user("user_1") == []

    def test_dispatch_is_audited(self, dispatcher, saved_baseline, audit_logger):
        _run(dispatcher.dispatch_buffered("user_1", [_hr(), _spo2()]))
        event = audit_logger.get_events(action="alert_dispatch")[0]
        assert event["metadata"]["path"] == "buffered"
        assert event["metadata"]["vital_kinds"] == ["heartRate", "spo2"]
        assert event["metadata"]["recipients"] == 2


class TestFallPath:
    def test_fall_notification_and_email(
        self, dispatcher, saved_baseline, guidance, mail_sender, notification_repository,
    ):
        fall = FallEvent(user_id="user_1", severity="medium", location="Bathroom")
        result = _run(dispatcher.dispatch_fall("user_1", fall))

        assert result.title == "Fall Detected - Medium Severity"
        note = notification_repository.list_for_user("user_1")[0]
        assert note.category == CATEGORY_EMERGENCY
        assert "Bathroom" in note.body
        assert guidance.contexts[0]["incident"]["severity"] == "medium"
        assert mail_sender.sent[0].subject == (
            "URGENT: Fall Detection Alert for Patient Margaret Lee (ID: user_1)"
        )
        assert len(mail_sender.sent) == 2

    def test_fall_guidance_failure(
        self, baseline_store, notification_sink, mail_sender, failing_guidance, saved_baseline,
    ):
        dispatcher = AlertDispatcher(baseline_store, notification_sink, mail_sender, failing_guidance)
        fall = FallEvent(user_id="user_1", severity="high", location="Stairs")
        result = _run(dispatcher.dispatch_fall("user_1", fall))
        assert result.guidance_fallback
        assert FALLBACK_GUIDANCE in mail_sender.sent[0].text

    def test_fall_without_caregiver_emails_still_notifies(
        self, dispatcher, user_repository, baseline_factory, mail_sender, notification_repository,
    ):
        user_repository.save(baseline_factory(caregivers=[Caregiver(name="Phone only", email="")]))
        fall = FallEvent(user_id="user_1", severity="high", location="Kitchen")
        result = _run(dispatcher.dispatch_fall("user_1", fall))

        assert result.delivered
        assert result.recipients == []
        assert mail_sender.sent == []
        notes = notification_repository.list_for_user("user_1")
        assert len(notes) == 1
        assert notes[0].category == CATEGORY_EMERGENCY
        assert "Kitchen" in notes[0].body

    def test_fall_for_unknown_user(self, dispatcher, mail_sender):
        fall = FallEvent(user_id="ghost", severity="low", location="Garden")
        result = _run(dispatcher.dispatch_fall("ghost", fall))
        assert not result.delivered
        assert mail_sender.sent == []


class TestContent:
    def test_html_is_escaped(self, baseline_store, notification_sink, mail_sender, guidance_factory,
                             user_repository, baseline_factory):
        user_repository.save(baseline_factory(name="<script>x</script>"))
        dispatcher = AlertDispatcher(
            baseline_store, notification_sink, mail_sender, guidance_factory(body="a < b")
        )
        _run(dispatcher.dispatch_buffered("user_1", [_hr()]))
        html_body = mail_sender.sent[0].html
        assert "<script>" not in html_body
        assert "a &lt; b" in html_body

    @pytest.mark.parametrize(
        "value,label",
        [(45, "Bradycardia"), (120, "Tachycardia"), (98, "deviation from personal baseline")],
    )
    def test_heart_rate_labels(self, value, label):
        assert label in describe_alert(_hr(value))
