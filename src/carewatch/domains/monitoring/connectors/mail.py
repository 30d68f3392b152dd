"""Caregiver email delivery."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)


def build_message(from_address: str, to: str, subject: str, text: str, html: str) -> MIMEMultipart:
    """multipart/alternative message with a plain-text and an HTML part."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_address
    msg["To"] = to
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


class SmtpMailSender:
    """MailSender over SMTP (STARTTLS by default).

    smtplib is blocking, so each send runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_address: str = "alerts@carewatch.local",
        use_tls: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    def _send_sync(self, to: str, subject: str, text: str, html: str) -> None:
        msg = build_message(self.from_address, to, subject, text, html)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, [to], msg.as_string())

    async def send(self, to: str, subject: str, text: str, html: str) -> bool:
        try:
            await asyncio.to_thread(self._send_sync, to, subject, text, html)
        except Exception as exc:
            logger.error("Failed to send email to %s: %s", to, exc)
            return False
        logger.info("Email sent to %s: %s", to, subject)
        return True


class LoggingMailSender:
    """MailSender used when no SMTP host is configured: logs instead of sending."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, to: str, subject: str, text: str, html: str) -> bool:
        self.sent.append((to, subject))
        logger.info("Email delivery disabled; would send to %s: %s", to, subject)
        return True
