"""CareWatch MCP Server — application factory.

This module provides:
- build_services() wiring storage, guidance, mail, scheduler and the monitoring engine
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from fastmcp import FastMCP

from carewatch.core.audit.logger import AuditLogger
from carewatch.core.config.settings import Settings, get_settings
from carewatch.core.llm.guidance import GuidanceGenerator, LLMGuidanceGenerator
from carewatch.core.llm.provider import create_provider
from carewatch.core.storage.database import HealthDatabase
from carewatch.core.storage.encryption import EncryptionError, FieldEncryptor
from carewatch.core.storage.repository import (
    NotificationRepository,
    ReadingRepository,
    UserRepository,
)
from carewatch.domains.monitoring.connectors import MailSender
from carewatch.domains.monitoring.connectors.mail import LoggingMailSender, SmtpMailSender
from carewatch.domains.monitoring.connectors.stores import (
    SQLiteBaselineStore,
    SQLiteNotificationSink,
    SQLiteReadingStore,
)
from carewatch.domains.monitoring.domain_logic.generator import ReadingGenerator
from carewatch.domains.monitoring.engine.alert_buffer import CriticalAlertBuffer
from carewatch.domains.monitoring.engine.dispatcher import AlertDispatcher
from carewatch.domains.monitoring.engine.pipeline import MonitoringPipeline
from carewatch.domains.monitoring.engine.registry import SimulationRegistry
from carewatch.domains.monitoring.engine.reports import HealthReporter
from carewatch.domains.monitoring.engine.scheduler import AsyncioScheduler, Scheduler
from carewatch.domains.monitoring.tools.notification_tools import register_notification_tools
from carewatch.domains.monitoring.tools.profile_tools import register_profile_tools
from carewatch.domains.monitoring.tools.simulation_tools import register_simulation_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "CareWatch"
SERVER_VERSION = "0.1.0"


@dataclass
class MonitoringServices:
    """Everything the tools need, built once per server."""

    database: HealthDatabase
    users: UserRepository
    readings: ReadingRepository
    notifications: NotificationRepository
    audit: AuditLogger
    buffer: CriticalAlertBuffer
    dispatcher: AlertDispatcher
    registry: SimulationRegistry
    reporter: HealthReporter
    guidance_provider: str
    mail_enabled: bool
    persistent: bool

    def shutdown(self) -> None:
        """Cancel running simulations and pending alert windows, then close storage."""
        self.registry.shutdown()
        self.buffer.cancel_all()
        self.database.close()


def _build_guidance(settings: Settings) -> tuple[GuidanceGenerator, str]:
    if settings.llm_provider == "mock":
        provider_name = "mock"
        api_key = ""
        model = ""
    elif settings.llm_provider == "anthropic":
        api_key = settings.anthropic_api_key
        model = settings.anthropic_model
        provider_name = "anthropic" if api_key else "mock"
    elif settings.llm_provider == "openai":
        api_key = settings.openai_api_key
        model = settings.openai_model
        provider_name = "openai" if api_key else "mock"
    else:  # pragma: no cover
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")

    if provider_name == "mock" and settings.llm_provider != "mock":
        logger.warning(
            "No API key configured for provider '%s'; falling back to mock provider",
            settings.llm_provider,
        )

    provider = create_provider(
        provider_name=provider_name,
        api_key=api_key,
        model=model,
        timeout_seconds=settings.guidance_timeout_seconds,
    )
    generator = LLMGuidanceGenerator(provider, timeout_seconds=settings.guidance_timeout_seconds)
    return generator, provider_name


def _build_storage(settings: Settings) -> tuple[HealthDatabase, FieldEncryptor, bool]:
    if settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
        else:
            database = HealthDatabase(settings.db_path)
            database.initialize()
            logger.info(
                "Database initialized: %s (schema v%d)",
                settings.db_path,
                database.get_schema_version(),
            )
            return database, encryptor, True

    logger.warning(
        "No usable ENCRYPTION_KEY configured; profiles and readings are kept in memory "
        "with an ephemeral key and will be lost on restart."
    )
    database = HealthDatabase(":memory:")
    database.initialize()
    return database, FieldEncryptor(FieldEncryptor.generate_key()), False


def _build_mail(settings: Settings) -> MailSender:
    if not settings.smtp_host:
        logger.info("No SMTP_HOST configured; caregiver emails are logged, not sent")
        return LoggingMailSender()
    logger.info("Caregiver email via %s:%d", settings.smtp_host, settings.smtp_port)
    return SmtpMailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        from_address=settings.mail_from,
        use_tls=settings.smtp_use_tls,
    )


def build_services(
    settings: Settings | None = None,
    *,
    database_override: HealthDatabase | None = None,
    encryptor_override: FieldEncryptor | None = None,
    guidance_override: GuidanceGenerator | None = None,
    mail_sender_override: MailSender | None = None,
    scheduler_override: Scheduler | None = None,
    rng_override: random.Random | None = None,
) -> MonitoringServices:
    """Wire storage, collaborators and the monitoring engine."""
    settings = settings or get_settings()

    # --- Storage ---
    if database_override is not None:
        database = database_override
        database.initialize()
        encryptor = encryptor_override or FieldEncryptor(FieldEncryptor.generate_key())
        persistent = encryptor_override is not None
    else:
        database, encryptor, persistent = _build_storage(settings)

    users = UserRepository(database, encryptor)
    readings = ReadingRepository(database)
    notifications = NotificationRepository(database)
    audit = AuditLogger(database)

    baseline_store = SQLiteBaselineStore(users)
    reading_store = SQLiteReadingStore(readings)
    notification_sink = SQLiteNotificationSink(notifications)

    # --- Collaborators ---
    if guidance_override is not None:
        guidance, provider_name = guidance_override, "override"
    else:
        guidance, provider_name = _build_guidance(settings)

    if mail_sender_override is not None:
        mail = mail_sender_override
    else:
        mail = _build_mail(settings)
    mail_enabled = not isinstance(mail, LoggingMailSender)

    scheduler = scheduler_override or AsyncioScheduler()

    # --- Monitoring engine ---
    dispatcher = AlertDispatcher(
        baseline_store,
        notification_sink,
        mail,
        guidance,
        audit=audit,
        system_name=settings.system_name,
    )
    buffer = CriticalAlertBuffer(scheduler, dispatcher.dispatch_buffered)
    pipeline = MonitoringPipeline(
        baseline_store,
        reading_store,
        buffer,
        dispatcher,
        generator=ReadingGenerator(rng_override),
    )
    registry = SimulationRegistry(scheduler, pipeline, baseline_store, reading_store)
    reporter = HealthReporter(baseline_store, reading_store, notification_sink, guidance)

    return MonitoringServices(
        database=database,
        users=users,
        readings=readings,
        notifications=notifications,
        audit=audit,
        buffer=buffer,
        dispatcher=dispatcher,
        registry=registry,
        reporter=reporter,
        guidance_provider=provider_name,
        mail_enabled=mail_enabled,
        persistent=persistent,
    )


def create_app(*, services_override: MonitoringServices | None = None) -> FastMCP:
    """Create and configure the CareWatch MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Builds (or accepts) the monitoring services
    3. Registers simulation, profile and notification tools
    """
    services = services_override or build_services()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "CareWatch eldercare monitoring server. Onboard a patient's health "
            "baseline and caregivers, run simulated vital-sign streams, and let "
            "critical readings and falls notify caregivers in-app and by email."
        ),
    )

    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "guidance_provider": services.guidance_provider,
            "email_enabled": services.mail_enabled,
            "persistent_storage": services.persistent,
            "users": services.users.count(),
            "active_simulations": services.registry.active_count,
        }

    register_simulation_tools(server, services.registry, services.readings, services.audit)
    register_profile_tools(server, services.users)
    register_notification_tools(server, services.notifications, services.reporter, services.audit)
    logger.info("CareWatch tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
