"""Outgoing e-mail over SMTP with a small retry policy."""
from __future__ import annotations

import logging
import smtplib
import time
from email.message import EmailMessage
from typing import Callable, Optional

from core.errors import MailDeliveryError, NotConfigured
from settings import MailSettings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 0.2


class Mailer:
    """Send plain text (and optional HTML) messages through one SMTP relay."""

    def __init__(
        self,
        settings: MailSettings,
        *,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._smtp_factory = smtp_factory
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _build_message(self, to: str, subject: str, text: str, html: str, sender: Optional[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = sender or self._settings.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "")
        if html:
            message.add_alternative(html, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        settings = self._settings
        with self._smtp_factory(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            server.starttls()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(message)

    def send(self, to: str, subject: str, text: str = "", html: str = "", *, sender: Optional[str] = None) -> None:
        """Deliver one message, retrying transient failures."""

        if not self.is_configured:
            raise NotConfigured("Mail is not configured: set SMTP_HOST and EMAIL_FROM")

        message = self._build_message(to, subject, text, html, sender)
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                self._deliver(message)
            except (smtplib.SMTPException, OSError) as exc:
                logger.warning("Mail delivery attempt %d to %s failed: %s", attempt, to, exc)
                if attempt == MAX_ATTEMPTS:
                    raise MailDeliveryError("Failed to send email") from exc
                self._sleep(BACKOFF_SECONDS * attempt)
            else:
                logger.info("Sent '%s' to %s", subject, to)
                return


__all__ = ["Mailer", "MAX_ATTEMPTS"]
