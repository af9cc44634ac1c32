from __future__ import annotations

import smtplib

import pytest

from core.errors import MailDeliveryError, NotConfigured
from core.mailer import MAX_ATTEMPTS, Mailer
from settings import MailSettings


def test_send_builds_multipart_message(mailer: Mailer, smtp) -> None:
    mailer.send("user@example.com", "Hello", "plain body", "<p>html body</p>")

    [message] = smtp.outbox
    assert message["To"] == "user@example.com"
    assert message["From"] == "Battery Log <noreply@example.com>"
    assert message["Subject"] == "Hello"
    assert message.get_body(preferencelist=("plain",)).get_content().strip() == "plain body"
    assert "html body" in message.get_body(preferencelist=("html",)).get_content()


def test_send_retries_transient_failures(settings, smtp) -> None:
    delays = []
    mailer = Mailer(settings.mail, smtp_factory=smtp, sleep=delays.append)
    smtp.failures_left = MAX_ATTEMPTS - 1

    mailer.send("user@example.com", "Retry", "body")

    assert len(smtp.outbox) == 1
    assert delays == pytest.approx([0.2, 0.4])


def test_send_gives_up_after_last_attempt(mailer: Mailer, smtp, caplog) -> None:
    smtp.failures_left = MAX_ATTEMPTS

    with pytest.raises(MailDeliveryError):
        mailer.send("user@example.com", "Nope", "body")

    assert smtp.outbox == []
    assert caplog.text.count("Mail delivery attempt") == MAX_ATTEMPTS


def test_smtp_errors_are_retried_too(settings) -> None:
    calls = []

    class _Rejecting:
        def __init__(self, host, port, timeout=0):
            calls.append((host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            return None

        def starttls(self):
            raise smtplib.SMTPNotSupportedError("no tls")

    mailer = Mailer(settings.mail, smtp_factory=_Rejecting, sleep=lambda seconds: None)

    with pytest.raises(MailDeliveryError):
        mailer.send("user@example.com", "Subject", "body")
    assert calls == [("smtp.example.com", 587)] * MAX_ATTEMPTS


def test_unconfigured_mailer_refuses_to_send() -> None:
    mailer = Mailer(MailSettings(smtp_host="", from_email=""))

    assert mailer.is_configured is False
    with pytest.raises(NotConfigured):
        mailer.send("user@example.com", "Subject", "body")
