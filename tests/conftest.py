"""Shared test fixtures for CareWatch tests."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("SMTP_HOST", "")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from carewatch.core.audit.logger import AuditLogger  # noqa: E402
from carewatch.core.llm.guidance import GuidanceError, GuidanceResult  # noqa: E402
from carewatch.core.storage.database import HealthDatabase  # noqa: E402
from carewatch.core.storage.encryption import FieldEncryptor  # noqa: E402
from carewatch.core.storage.models import Caregiver, Medication, UserBaseline  # noqa: E402
from carewatch.core.storage.repository import (  # noqa: E402
    NotificationRepository,
    ReadingRepository,
    UserRepository,
)
from carewatch.domains.monitoring.connectors.stores import (  # noqa: E402
    SQLiteBaselineStore,
    SQLiteNotificationSink,
    SQLiteReadingStore,
)


# ---------------------------------------------------------------------------
# Baselines
# ---------------------------------------------------------------------------

def make_baseline(**overrides: Any) -> UserBaseline:
    """A 60 year old patient with no conditions (so no adjustments apply)."""
    values: dict[str, Any] = {
        "user_id": "user_1",
        "name": "Margaret Lee",
        "age": 60,
        "gender": "female",
        "normal_heart_rate": 72,
        "normal_bp": "120/80",
        "normal_spo2": 98,
        "health_conditions": [],
        "medications": [Medication(name="Lisinopril", dosage="10mg")],
        "caregivers": [
            Caregiver(name="Ann Lee", email="ann@example.com"),
            Caregiver(name="Bob Lee", email="bob@example.com"),
        ],
    }
    values.update(overrides)
    return UserBaseline(**values)


# ---------------------------------------------------------------------------
# Fake scheduler (manual clock)
# ---------------------------------------------------------------------------

@dataclass
class _FakeTimer:
    due: float
    callback: Any
    interval: float | None = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler driven by :meth:`advance` instead of wall-clock time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_FakeTimer] = []

    def call_later(self, delay_seconds: float, callback) -> _FakeTimer:
        timer = _FakeTimer(due=self.now + delay_seconds, callback=callback)
        self._timers.append(timer)
        return timer

    def call_every(self, interval_seconds: float, callback) -> _FakeTimer:
        timer = _FakeTimer(
            due=self.now + interval_seconds, callback=callback, interval=interval_seconds
        )
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[_FakeTimer]:
        return [t for t in self._timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that falls due in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            if timer.interval is None:
                self._timers.remove(timer)
            else:
                timer.due += timer.interval
            await timer.callback()
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

@dataclass
class SentMail:
    to: str
    subject: str
    text: str
    html: str


class RecordingMailSender:
    """MailSender that records messages; addresses in ``fail_for`` fail."""

    def __init__(self, fail_for: set[str] | None = None, raise_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.raise_for = raise_for or set()
        self.sent: list[SentMail] = []
        self.attempts: list[str] = []

    async def send(self, to: str, subject: str, text: str, html: str) -> bool:
        self.attempts.append(to)
        if to in self.raise_for:
            raise ConnectionError(f"SMTP refused {to}")
        if to in self.fail_for:
            return False
        self.sent.append(SentMail(to=to, subject=subject, text=text, html=html))
        return True


@dataclass
class FakeGuidance:
    """GuidanceGenerator returning fixed text, or failing when ``error`` is set."""

    body: str = "Check on the patient and call their doctor."
    error: Exception | None = None
    contexts: list[dict[str, Any]] = field(default_factory=list)

    async def generate(self, context: dict[str, Any]) -> GuidanceResult:
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return GuidanceResult(body=self.body, model="fake")


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture
def guidance() -> FakeGuidance:
    return FakeGuidance()


@pytest.fixture
def failing_guidance() -> FakeGuidance:
    return FakeGuidance(error=GuidanceError("provider timed out"))


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """In-memory SQLite database with the full schema."""
    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor() -> FieldEncryptor:
    return FieldEncryptor(FieldEncryptor.generate_key())


@pytest.fixture
def user_repository(health_db, field_encryptor) -> UserRepository:
    return UserRepository(health_db, field_encryptor)


@pytest.fixture
def reading_repository(health_db) -> ReadingRepository:
    return ReadingRepository(health_db)


@pytest.fixture
def notification_repository(health_db) -> NotificationRepository:
    return NotificationRepository(health_db)


@pytest.fixture
def audit_logger(health_db) -> AuditLogger:
    return AuditLogger(health_db)


@pytest.fixture
def baseline_store(user_repository) -> SQLiteBaselineStore:
    return SQLiteBaselineStore(user_repository)


@pytest.fixture
def reading_store(reading_repository) -> SQLiteReadingStore:
    return SQLiteReadingStore(reading_repository)


@pytest.fixture
def notification_sink(notification_repository) -> SQLiteNotificationSink:
    return SQLiteNotificationSink(notification_repository)


@pytest.fixture
def saved_baseline(user_repository) -> UserBaseline:
    """The default patient, stored."""
    return user_repository.save(make_baseline())


@pytest.fixture
def baseline_factory():
    """``make_baseline`` for tests that need custom profiles."""
    return make_baseline


@pytest.fixture
def mail_sender_factory():
    return RecordingMailSender


@pytest.fixture
def guidance_factory():
    return FakeGuidance
