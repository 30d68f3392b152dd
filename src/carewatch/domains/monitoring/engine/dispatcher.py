"""Alert dispatcher — immediate (fall) and buffered (vitals) escalation paths.

Both paths resolve the patient and caregivers, ask the guidance generator for
caregiver-facing advice once, write one in-app notification and then email
every caregiver independently. Guidance failures degrade to
:data:`FALLBACK_GUIDANCE`; a failed email is logged and the remaining
caregivers are still contacted.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from carewatch.core.storage.models import UserBaseline
from carewatch.domains.monitoring.domain_logic.thresholds import (
    DIASTOLIC_HIGH,
    DIASTOLIC_LOW,
    HEART_RATE_HIGH,
    HEART_RATE_LOW,
    SYSTOLIC_HIGH,
    SYSTOLIC_LOW,
)
from carewatch.domains.monitoring.domain_logic.vital_models import (
    AlertRecord,
    FallEvent,
    VitalKind,
)

if TYPE_CHECKING:
    from carewatch.core.audit.logger import AuditLogger
    from carewatch.core.llm.guidance import GuidanceGenerator
    from carewatch.domains.monitoring.connectors import (
        BaselineStore,
        MailSender,
        NotificationSink,
    )

logger = logging.getLogger(__name__)

CATEGORY_CRITICAL = "critical_health_condition"
CATEGORY_EMERGENCY = "emergency_alert"

MULTIPLE_ALERTS_TITLE = "CRITICAL: Multiple Health Alerts"

FALLBACK_GUIDANCE = (
    "Please check on the patient as soon as possible. If they are unresponsive, "
    "in pain, or having difficulty breathing, call emergency services immediately. "
    "Otherwise, contact their healthcare provider to review these readings."
)


@dataclass
class DispatchResult:
    """Outcome of one dispatch, mainly for logging and tests."""

    delivered: bool
    title: str = ""
    recipients: list[str] = field(default_factory=list)
    failed_recipients: list[str] = field(default_factory=list)
    guidance_fallback: bool = False
    reason: str = ""


# ---------------------------------------------------------------------------
# Content helpers
# ---------------------------------------------------------------------------

def describe_alert(alert: AlertRecord) -> str:
    """One human-readable line for a critical reading."""
    details = alert.details
    if alert.vital_kind is VitalKind.HEART_RATE:
        if alert.value < HEART_RATE_LOW:
            label = "Bradycardia"
        elif alert.value > HEART_RATE_HIGH:
            label = "Tachycardia"
        else:
            label = "deviation from personal baseline"
        return f"Heart Rate: {alert.value} BPM ({label})"
    if alert.vital_kind is VitalKind.BLOOD_PRESSURE:
        systolic = details.get("systolic")
        diastolic = details.get("diastolic")
        notes: list[str] = []
        if systolic is not None and systolic > SYSTOLIC_HIGH:
            notes.append("high systolic")
        elif systolic is not None and systolic < SYSTOLIC_LOW:
            notes.append("low systolic")
        if diastolic is not None and diastolic > DIASTOLIC_HIGH:
            notes.append("high diastolic")
        elif diastolic is not None and diastolic < DIASTOLIC_LOW:
            notes.append("low diastolic")
        suffix = f" ({', '.join(notes)})" if notes else " (deviation from personal baseline)"
        return f"Blood Pressure: {systolic}/{diastolic} mmHg{suffix}"
    if alert.vital_kind is VitalKind.SPO2:
        return f"Blood Oxygen Level: {alert.value}% (possible hypoxemia)"
    return f"{alert.vital_kind.display_name}: {alert.value}"


def buffered_title(alerts: list[AlertRecord]) -> str:
    kinds = {a.vital_kind for a in alerts}
    if len(kinds) == 1:
        return f"CRITICAL: {alerts[0].vital_kind.display_name} Alert"
    return MULTIPLE_ALERTS_TITLE


def fall_title(fall: FallEvent) -> str:
    return f"Fall Detected - {fall.severity.capitalize()} Severity"


def patient_context(baseline: UserBaseline) -> dict[str, Any]:
    """Patient facts shared with the guidance generator."""
    return {
        "name": baseline.name,
        "age": baseline.age,
        "gender": baseline.gender,
        "health_conditions": list(baseline.health_conditions),
        "medications": [f"{m.name} {m.dosage}".strip() for m in baseline.medications],
        "baseline": {
            "heart_rate": baseline.normal_heart_rate,
            "blood_pressure": baseline.normal_bp,
            "spo2": baseline.normal_spo2,
        },
    }


def _patient_details_text(baseline: UserBaseline) -> list[str]:
    lines = [
        "Patient Details:",
        f"Name: {baseline.name}",
        f"Age: {baseline.age}",
        f"Gender: {baseline.gender}",
    ]
    if baseline.health_conditions:
        lines.append(f"Medical Conditions: {', '.join(baseline.health_conditions)}")
    if baseline.medications:
        meds = ", ".join(f"{m.name} ({m.dosage})" for m in baseline.medications)
        lines.append(f"Medications: {meds}")
    return lines


def _render_html(heading: str, items: list[str], guidance: str, footer_lines: list[str]) -> str:
    esc = html.escape
    parts = [f"<h2>{esc(heading)}</h2>", "<ul>"]
    parts.extend(f"<li>{esc(item)}</li>" for item in items)
    parts.append("</ul>")
    parts.append("<h3>Guidance</h3>")
    parts.append(f"<p>{esc(guidance).replace(chr(10), '<br>')}</p>")
    parts.append("<p>" + "<br>".join(esc(line) for line in footer_lines) + "</p>")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class AlertDispatcher:
    """Builds and delivers caregiver alerts.

    Usage::

        dispatcher = AlertDispatcher(baselines, notifications, mail, guidance)
        await dispatcher.dispatch_fall("user_1", fall_event)
        await dispatcher.dispatch_buffered("user_1", [hr_alert, spo2_alert])
    """

    def __init__(
        self,
        baselines: BaselineStore,
        notifications: NotificationSink,
        mail: MailSender,
        guidance: GuidanceGenerator,
        *,
        audit: AuditLogger | None = None,
        system_name: str = "CareWatch Health Monitoring System",
    ) -> None:
        self._baselines = baselines
        self._notifications = notifications
        self._mail = mail
        self._guidance = guidance
        self._audit = audit
        self._system_name = system_name

    async def _guidance_text(self, context: dict[str, Any]) -> tuple[str, bool]:
        """Guidance body and whether the fallback was used."""
        try:
            result = await self._guidance.generate(context)
        except Exception as exc:
            logger.warning("Guidance unavailable, using fallback text: %s", exc)
            return FALLBACK_GUIDANCE, True
        body = (result.body or "").strip()
        if not body:
            logger.warning("Guidance returned empty text, using fallback")
            return FALLBACK_GUIDANCE, True
        return body, False

    async def _resolve(
        self, user_id: str, path: str, *, require_caregivers: bool = True
    ) -> tuple[UserBaseline | None, str]:
        try:
            baseline = await self._baselines.get_baseline(user_id)
        except Exception:
            logger.exception("Could not load user %s for %s dispatch", user_id, path)
            return None, "user_lookup_failed"
        if baseline is None:
            logger.warning("User %s not found; dropping %s alert", user_id, path)
            return None, "user_not_found"
        if not baseline.caregiver_emails():
            if require_caregivers:
                logger.warning("No caregiver emails for user %s; dropping %s alert", user_id, path)
                return None, "no_caregivers"
            logger.warning("No caregiver emails for user %s; %s alert is in-app only", user_id, path)
        return baseline, ""

    async def _deliver(
        self,
        baseline: UserBaseline,
        *,
        title: str,
        category: str,
        notification_body: str,
        subject: str,
        text: str,
        html_body: str,
    ) -> tuple[list[str], list[str]]:
        try:
            await self._notifications.add_notification(
                baseline.user_id, title, notification_body, category
            )
        except Exception:
            logger.exception("Failed to store notification for user %s", baseline.user_id)

        recipients = baseline.caregiver_emails()
        failed: list[str] = []
        for address in recipients:
            try:
                ok = await self._mail.send(address, subject, text, html_body)
            except Exception:
                logger.exception("Mail sender raised for %s", address)
                ok = False
            if not ok:
                failed.append(address)
        if failed:
            logger.warning(
                "Alert email failed for %d of %d caregivers of user %s",
                len(failed),
                len(recipients),
                baseline.user_id,
            )
        return recipients, failed

    def _footer(self) -> str:
        return f"This is an automated message from {self._system_name}."

    def _record(
        self, user_id: str, path: str, kinds: list[str], result: DispatchResult
    ) -> None:
        if self._audit is None:
            return
        self._audit.log_dispatch(
            user_id=user_id,
            path=path,
            vital_kinds=kinds,
            recipients=len(result.recipients),
            failed_recipients=len(result.failed_recipients),
            guidance_fallback=result.guidance_fallback,
            status="success" if result.delivered else "skipped",
        )

    # ---------------------------------------------------------------
    # Immediate path
    # ---------------------------------------------------------------

    async def dispatch_fall(self, user_id: str, fall: FallEvent) -> DispatchResult:
        """Escalate a fall right away, bypassing the alert buffer."""
        kinds = [VitalKind.FALL_DETECTION.value]
        baseline, reason = await self._resolve(user_id, "fall", require_caregivers=False)
        if baseline is None:
            result = DispatchResult(delivered=False, reason=reason)
            self._record(user_id, "immediate", kinds, result)
            return result

        context = {
            "kind": "fall",
            "patient": patient_context(baseline),
            "incident": {
                "type": "fall",
                "severity": fall.severity,
                "location": fall.location,
                "detected_at": fall.timestamp,
            },
        }
        guidance, fallback = await self._guidance_text(context)

        title = fall_title(fall)
        summary = (
            f"A {fall.severity} severity fall was detected in the {fall.location} "
            f"at {fall.timestamp}. Immediate assistance may be required."
        )
        subject = f"URGENT: Fall Detection Alert for Patient {baseline.name} (ID: {user_id})"
        incident = [
            f"Severity: {fall.severity}",
            f"Location: {fall.location}",
            f"Timestamp: {fall.timestamp}",
        ]
        details = _patient_details_text(baseline)
        text = "\n".join(
            [f"A fall has been detected for {baseline.name}:", "", *incident, "",
             "Guidance:", guidance, "", *details, "", self._footer()]
        )
        html_body = _render_html(title, incident, guidance, [*details, self._footer()])

        recipients, failed = await self._deliver(
            baseline,
            title=title,
            category=CATEGORY_EMERGENCY,
            notification_body=f"{summary}\n\n{guidance}",
            subject=subject,
            text=text,
            html_body=html_body,
        )
        result = DispatchResult(
            delivered=True,
            title=title,
            recipients=recipients,
            failed_recipients=failed,
            guidance_fallback=fallback,
        )
        logger.info(
            "Fall alert dispatched for user %s (%s, %d caregivers)",
            user_id,
            fall.severity,
            len(recipients),
        )
        self._record(user_id, "immediate", kinds, result)
        return result

    # ---------------------------------------------------------------
    # Buffered path
    # ---------------------------------------------------------------

    async def dispatch_buffered(self, user_id: str, alerts: list[AlertRecord]) -> DispatchResult:
        """Send one combined alert for every critical vital in a closed window."""
        kinds = [a.vital_kind.value for a in alerts]
        if not alerts:
            return DispatchResult(delivered=False, reason="no_alerts")

        baseline, reason = await self._resolve(user_id, "buffered")
        if baseline is None:
            result = DispatchResult(delivered=False, reason=reason)
            self._record(user_id, "buffered", kinds, result)
            return result

        context = {
            "kind": "critical_vitals",
            "patient": patient_context(baseline),
            "alerts": [
                {
                    "vital": a.vital_kind.display_name,
                    "value": a.value,
                    "details": a.details,
                    "detected_at": a.detected_at,
                }
                for a in alerts
            ],
        }
        guidance, fallback = await self._guidance_text(context)

        title = buffered_title(alerts)
        lines = [f"{describe_alert(a)} at {a.detected_at}" for a in alerts]
        if len(alerts) == 1:
            subject = (
                f"ALERT: Critical {alerts[0].vital_kind.display_name} Reading for "
                f"Patient {baseline.name} (ID: {user_id})"
            )
        else:
            subject = f"ALERT: Multiple Critical Readings for Patient {baseline.name} (ID: {user_id})"
        details = _patient_details_text(baseline)
        text = "\n".join(
            [f"Critical vital sign readings have been detected for {baseline.name}:", "",
             *lines, "", "Guidance:", guidance, "", *details, "", self._footer()]
        )
        html_body = _render_html(title, lines, guidance, [*details, self._footer()])

        recipients, failed = await self._deliver(
            baseline,
            title=title,
            category=CATEGORY_CRITICAL,
            notification_body="\n".join(lines) + f"\n\n{guidance}",
            subject=subject,
            text=text,
            html_body=html_body,
        )
        result = DispatchResult(
            delivered=True,
            title=title,
            recipients=recipients,
            failed_recipients=failed,
            guidance_fallback=fallback,
        )
        logger.info(
            "Buffered alert dispatched for user %s (%s, %d caregivers)",
            user_id,
            ", ".join(kinds),
            len(recipients),
        )
        self._record(user_id, "buffered", kinds, result)
        return result
