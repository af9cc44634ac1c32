from __future__ import annotations

import logging

from settings import DEFAULT_WORKSHEET_TITLE, load_settings


def test_defaults_when_environment_is_empty() -> None:
    settings = load_settings({})

    assert settings.sheet.spreadsheet_id == ""
    assert settings.sheet.worksheet_title == DEFAULT_WORKSHEET_TITLE
    assert settings.jwt_expires_days == 7
    assert settings.otp_expires_min == 15
    assert settings.otp_max_attempts == 5
    assert settings.admin.email == "admin@test.com"
    assert settings.admin.password_from_env is False
    assert settings.mail.is_configured is False
    assert settings.cors_origins == ["http://localhost:5173"]
    assert "JWT_SECRET" in settings.missing_configuration()


def test_alias_variables_and_fallback_order() -> None:
    settings = load_settings(
        {
            "SPREADSHEET_ID": "abc",
            "SHEET_NAME": "Logs",
            "JWT_KEY": "k1",
            "JWT_SECRET_KEY": "k2",
            "ADMIN_PASS": "s3cret",
            "SMTP_HOST": "smtp.example.com",
            "EMAIL_FROM": "noreply@example.com",
            "CORS_ORIGINS": "https://a.example, https://b.example ,",
        }
    )

    assert settings.sheet.spreadsheet_id == "abc"
    assert settings.sheet.worksheet_title == "Logs"
    assert settings.jwt_secret == "k2"
    assert settings.admin.password == "s3cret"
    assert settings.admin.password_from_env is True
    assert settings.mail.sender == "Battery Log <noreply@example.com>"
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.missing_configuration() == []


def test_invalid_integers_fall_back_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="settings"):
        settings = load_settings({"OTP_MAX_ATTEMPTS": "many", "PORT": "8080"})

    assert settings.otp_max_attempts == 5
    assert settings.port == 8080
    assert "OTP_MAX_ATTEMPTS" in caplog.text


def test_memory_store_marker() -> None:
    assert load_settings({"SHEET_ID": "memory:"}).sheet.uses_memory_store is True
    assert load_settings({"SHEET_ID": "abc"}).sheet.uses_memory_store is False
