"""Error taxonomy shared by the battery log services and HTTP layer."""
from __future__ import annotations


class BatteryLogError(Exception):
    """Base error carrying the HTTP status used when reporting it."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BatteryLogError):
    """Raised when client input is missing or malformed."""

    status_code = 400


class OtpAttemptsExceeded(ValidationError):
    """Raised when a reset code was guessed wrong too many times."""

    status_code = 429


class AuthError(BatteryLogError):
    """Raised for missing, invalid or expired bearer tokens."""

    status_code = 401


class ForbiddenError(AuthError):
    """Raised when the caller is authenticated but lacks the required role."""

    status_code = 403


class StoreUnavailable(BatteryLogError):
    """Raised when the backing worksheet cannot be reached or is misconfigured."""

    status_code = 500


class NotConfigured(BatteryLogError):
    """Raised when required server-side configuration is absent."""

    status_code = 500


class MailDeliveryError(BatteryLogError):
    """Raised when an e-mail could not be delivered."""

    status_code = 500


__all__ = [
    "AuthError",
    "BatteryLogError",
    "ForbiddenError",
    "MailDeliveryError",
    "NotConfigured",
    "OtpAttemptsExceeded",
    "StoreUnavailable",
    "ValidationError",
]
