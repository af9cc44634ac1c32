"""Application configuration helpers for the battery log backend."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from core import app_paths


logger = logging.getLogger(__name__)


DEFAULT_WORKSHEET_TITLE = "Sheet1"
DEFAULT_DB_PATH = str(app_paths.data_path("batterylog.db"))
DEFAULT_JWT_EXPIRES_DAYS = 7
DEFAULT_ADMIN_EMAIL = "admin@test.com"
DEFAULT_ADMIN_PASSWORD = "123456"
DEFAULT_ADMIN_NAME = "Default Admin"
DEFAULT_SMTP_PORT = 587
DEFAULT_EMAIL_FROM_NAME = "Battery Log"
DEFAULT_OTP_EXPIRES_MIN = 15
DEFAULT_OTP_MAX_ATTEMPTS = 5
DEFAULT_PORT = 5000
DEFAULT_CORS_ORIGINS = ("http://localhost:5173",)
MEMORY_SPREADSHEET_ID = "memory:"


@dataclass
class SheetSettings:
    spreadsheet_id: str = ""
    worksheet_title: str = DEFAULT_WORKSHEET_TITLE
    credentials_file: str = ""
    client_email: str = ""
    private_key: str = ""

    @property
    def uses_memory_store(self) -> bool:
        return self.spreadsheet_id == MEMORY_SPREADSHEET_ID


@dataclass
class MailSettings:
    smtp_host: str = ""
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = DEFAULT_EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"


@dataclass
class AdminSeed:
    email: str = DEFAULT_ADMIN_EMAIL
    password: str = DEFAULT_ADMIN_PASSWORD
    name: str = DEFAULT_ADMIN_NAME
    password_from_env: bool = False


@dataclass
class AppSettings:
    sheet: SheetSettings = field(default_factory=SheetSettings)
    mail: MailSettings = field(default_factory=MailSettings)
    admin: AdminSeed = field(default_factory=AdminSeed)
    jwt_secret: str = ""
    jwt_expires_days: int = DEFAULT_JWT_EXPIRES_DAYS
    database_path: str = DEFAULT_DB_PATH
    otp_expires_min: int = DEFAULT_OTP_EXPIRES_MIN
    otp_max_attempts: int = DEFAULT_OTP_MAX_ATTEMPTS
    port: int = DEFAULT_PORT
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def missing_configuration(self) -> List[str]:
        """Return human readable names of settings required at runtime but unset."""

        missing: List[str] = []
        if not self.sheet.spreadsheet_id:
            missing.append("SHEET_ID / SPREADSHEET_ID")
        if not self.jwt_secret:
            missing.append("JWT_SECRET")
        if not self.mail.is_configured:
            missing.append("SMTP_HOST / EMAIL_FROM")
        return missing


def _first(environ: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        value = environ.get(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid integer for %s: %r (using %s)", name, raw, default)
        return default


def _origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Build :class:`AppSettings` from ``environ`` (``os.environ`` by default)."""

    env = os.environ if environ is None else environ

    sheet = SheetSettings(
        spreadsheet_id=_first(env, "SHEET_ID", "SPREADSHEET_ID"),
        worksheet_title=_first(env, "SHEET_NAME", default=DEFAULT_WORKSHEET_TITLE),
        credentials_file=_first(env, "GOOGLE_APPLICATION_CREDENTIALS"),
        client_email=_first(env, "GOOGLE_CLIENT_EMAIL"),
        # Trimming is left to the credential loader, which needs the raw escapes.
        private_key=env.get("GOOGLE_PRIVATE_KEY", ""),
    )
    mail = MailSettings(
        smtp_host=_first(env, "SMTP_HOST"),
        smtp_port=_int(env, "SMTP_PORT", DEFAULT_SMTP_PORT),
        smtp_user=_first(env, "SMTP_USER"),
        smtp_password=env.get("SMTP_PASS", ""),
        from_email=_first(env, "EMAIL_FROM"),
        from_name=_first(env, "EMAIL_FROM_NAME", default=DEFAULT_EMAIL_FROM_NAME),
    )
    admin_password = env.get("ADMIN_PASS")
    admin = AdminSeed(
        email=_first(env, "ADMIN_EMAIL", default=DEFAULT_ADMIN_EMAIL),
        password=admin_password or DEFAULT_ADMIN_PASSWORD,
        name=_first(env, "ADMIN_NAME", default=DEFAULT_ADMIN_NAME),
        password_from_env=bool(admin_password),
    )
    cors = _origins(env.get("CORS_ORIGINS", ""))

    return AppSettings(
        sheet=sheet,
        mail=mail,
        admin=admin,
        jwt_secret=_first(env, "JWT_SECRET", "JWT_SECRET_KEY", "JWT_KEY"),
        jwt_expires_days=_int(env, "JWT_EXPIRES_DAYS", DEFAULT_JWT_EXPIRES_DAYS),
        database_path=_first(env, "BATTERYLOG_DB_PATH", default=DEFAULT_DB_PATH),
        otp_expires_min=_int(env, "OTP_EXPIRES_MIN", DEFAULT_OTP_EXPIRES_MIN),
        otp_max_attempts=_int(env, "OTP_MAX_ATTEMPTS", DEFAULT_OTP_MAX_ATTEMPTS),
        port=_int(env, "PORT", DEFAULT_PORT),
        cors_origins=cors or list(DEFAULT_CORS_ORIGINS),
        log_level=_first(env, "LOG_LEVEL", default="INFO").upper(),
        log_file=_first(env, "BATTERYLOG_LOG_FILE") or None,
    )


__all__ = [
    "AdminSeed",
    "AppSettings",
    "MailSettings",
    "SheetSettings",
    "DEFAULT_WORKSHEET_TITLE",
    "MEMORY_SPREADSHEET_ID",
    "load_settings",
]
