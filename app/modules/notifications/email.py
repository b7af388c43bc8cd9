"""Outbound email delivery."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the mail server."""


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    subject: str
    text: str
    html: str | None = None


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class SmtpEmailSender:
    """Send email through an SMTP relay with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        from_email: str,
        from_name: str,
        *,
        timeout_seconds: int = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout_seconds = timeout_seconds

    def _build_mime(self, message: EmailMessage) -> MIMEMultipart | MIMEText:
        if message.html:
            mime: MIMEMultipart | MIMEText = MIMEMultipart("alternative")
            mime.attach(MIMEText(message.text, "plain"))
            mime.attach(MIMEText(message.html, "html"))
        else:
            mime = MIMEText(message.text, "plain")
        mime["Subject"] = message.subject
        mime["From"] = f"{self.from_name} <{self.from_email}>"
        mime["To"] = message.to
        return mime

    def _send_sync(self, message: EmailMessage) -> None:
        mime = self._build_mime(message)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
            server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.from_email, message.to, mime.as_string())

    async def send(self, message: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"{type(exc).__name__}: {exc}") from exc
        logger.info("Email sent to %s: %s", message.to, message.subject)


class LoggingEmailSender:
    """Log emails instead of sending them; used when SMTP is not configured."""

    async def send(self, message: EmailMessage) -> None:
        logger.info("SMTP not configured, email to %s not sent: %s", message.to, message.subject)


def get_email_sender() -> EmailSender:
    """Return SMTP sender when configured, logging sender otherwise."""
    settings = get_settings()
    if not settings.smtp_host:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
    )
