"""One-time-code password reset flow.

A reset request stores the SHA-256 digest of a random six digit code together
with an expiry and an attempt counter, then e-mails the plain code.  The
pending code is cleared when it is used, when it expires and when too many
wrong guesses were made.  If the e-mail cannot be sent the freshly stored code
is cleared again so the account is not left with a reset nobody can finish.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from werkzeug.security import check_password_hash, generate_password_hash

import db
from core.errors import (
    BatteryLogError,
    MailDeliveryError,
    OtpAttemptsExceeded,
    ValidationError,
)
from core.mailer import Mailer
from settings import AppSettings

logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = "If an account with that email exists, an OTP has been sent."


def generate_otp() -> str:
    return str(secrets.randbelow(900_000) + 100_000)


def hash_otp(otp: str) -> str:
    return hashlib.sha256(str(otp).encode("utf-8")).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value).strip()


def request_password_reset(payload: Any, mailer: Mailer, settings: AppSettings) -> str:
    """Store a new reset code for the account and e-mail it; returns the reply message."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    email = db.normalise_email(_text(payload, "email"))
    if not email:
        raise ValidationError("Email is required")

    user = db.get_user_by_email(email)
    if user is None:
        # Same answer either way so the endpoint cannot be used to probe accounts.
        return GENERIC_RESET_MESSAGE

    otp = generate_otp()
    expires = _now() + timedelta(minutes=settings.otp_expires_min)
    db.set_reset_otp(user.id, hash_otp(otp), expires)

    subject = "Your password reset code (OTP)"
    text = (
        f"Your password reset code is: {otp}. "
        f"It will expire in {settings.otp_expires_min} minutes."
    )
    html = (
        f"<p>Hello {user.name},</p>"
        f"<p>Your password reset code is:</p>"
        f'<p style="font-size:22px;letter-spacing:4px;font-weight:700">{otp}</p>'
        f"<p>This code will expire in {settings.otp_expires_min} minutes. "
        f"If you did not request this, you can ignore this email.</p>"
    )
    try:
        mailer.send(user.email, subject, text, html)
    except BatteryLogError as exc:
        logger.warning("Reset code for %s could not be sent: %s", user.email, exc)
        db.clear_reset_otp(user.id)
        raise MailDeliveryError("Failed to send OTP email") from exc

    logger.info("Password reset code issued for %s", user.email)
    return GENERIC_RESET_MESSAGE


def reset_password(payload: Any, mailer: Mailer, settings: AppSettings) -> str:
    """Check a reset code and replace the password; returns the reply message."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    email = db.normalise_email(_text(payload, "email"))
    otp = _text(payload, "otp")
    raw_password = payload.get("newPassword")
    new_password = "" if raw_password is None else str(raw_password)
    if not email or not otp or not new_password:
        raise ValidationError("Email, otp and new password are required")

    user = db.get_user_by_email(email)
    if user is None:
        raise ValidationError("Invalid OTP or email")
    if not user.reset_otp_hash or user.reset_otp_expires is None:
        raise ValidationError("No OTP requested or OTP expired")

    if _now() > user.reset_otp_expires:
        db.clear_reset_otp(user.id)
        raise ValidationError("OTP expired")

    if user.reset_otp_attempts >= settings.otp_max_attempts:
        db.clear_reset_otp(user.id)
        raise OtpAttemptsExceeded("Too many incorrect OTP attempts. Request a new code.")

    if not hmac.compare_digest(hash_otp(otp), user.reset_otp_hash):
        attempts = db.increment_reset_attempts(user.id)
        logger.info("Wrong reset code for %s (attempt %d)", user.email, attempts)
        raise ValidationError("Invalid OTP")

    if check_password_hash(user.password_hash, new_password):
        raise ValidationError("New password cannot be the same as the previous password.")

    db.update_password(user.id, generate_password_hash(new_password))
    logger.info("Password reset completed for %s", user.email)

    try:
        mailer.send(
            user.email,
            "Your password has been changed",
            "Your password was changed successfully.",
            f"<p>Hello {user.name},</p><p>Your password was changed successfully. "
            f"If you did not perform this action, contact support immediately.</p>",
        )
    except BatteryLogError as exc:
        logger.warning("Password change confirmation to %s failed: %s", user.email, exc)

    return "Password updated successfully"


__all__ = [
    "GENERIC_RESET_MESSAGE",
    "generate_otp",
    "hash_otp",
    "request_password_reset",
    "reset_password",
]
