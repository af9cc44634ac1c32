from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

import db
from app import create_app
from core.mailer import Mailer
from core.row_mapper import LEGACY_COLUMNS
from core.row_store import MemoryRowStore
from settings import AppSettings, MailSettings, load_settings


class RecordingSMTP:
    """Stand-in for :class:`smtplib.SMTP` that keeps sent messages in memory."""

    outbox: List = []
    failures_left = 0

    def __init__(self, host: str, port: int, timeout: float = 0) -> None:
        self.host = host
        self.port = port

    def __enter__(self) -> "RecordingSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        return None

    def login(self, user: str, password: str) -> None:
        return None

    def send_message(self, message) -> None:
        if RecordingSMTP.failures_left:
            RecordingSMTP.failures_left -= 1
            raise OSError("connection refused")
        RecordingSMTP.outbox.append(message)


@pytest.fixture
def smtp() -> type:
    RecordingSMTP.outbox = []
    RecordingSMTP.failures_left = 0
    return RecordingSMTP


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return load_settings(
        {
            "SHEET_ID": "memory:",
            "JWT_SECRET": "test-secret",
            "BATTERYLOG_DB_PATH": str(tmp_path / "users.db"),
            "ADMIN_EMAIL": "admin@example.com",
            "ADMIN_PASS": "admin-pass",
            "SMTP_HOST": "smtp.example.com",
            "EMAIL_FROM": "noreply@example.com",
        }
    )


@pytest.fixture
def mailer(settings: AppSettings, smtp: type) -> Mailer:
    return Mailer(settings.mail, smtp_factory=smtp, sleep=lambda seconds: None)


@pytest.fixture
def unconfigured_mailer() -> Mailer:
    return Mailer(MailSettings())


@pytest.fixture
def user_db(settings: AppSettings) -> Path:
    db.set_database_path(Path(settings.database_path))
    return db.initialize_database()


@pytest.fixture
def store() -> MemoryRowStore:
    return MemoryRowStore(list(LEGACY_COLUMNS))


@pytest.fixture
def app(settings: AppSettings, store: MemoryRowStore, mailer: Mailer):
    application = create_app(settings, store=store, mailer=mailer)
    application.config.update(TESTING=True)
    return application


@pytest.fixture
def client(app):
    return app.test_client()
