"""Registration and login on top of the SQLite user store."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from werkzeug.security import check_password_hash, generate_password_hash

import db
from core.auth import issue_token
from core.errors import AuthError, ValidationError

logger = logging.getLogger(__name__)


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def register(payload: Any) -> db.User:
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    name = _text(payload, "name").strip()
    email = db.normalise_email(_text(payload, "email"))
    password = _text(payload, "password")
    role = _text(payload, "role").strip() or "user"
    if not name or not email or not password:
        raise ValidationError("All fields are required")
    if role not in db.ROLES:
        raise ValidationError("Role must be 'user' or 'admin'")

    return db.create_user(name, email, generate_password_hash(password), role)


def login(payload: Any, *, secret: str, expires_days: int) -> Dict[str, str]:
    """Verify credentials and return ``{"token", "role", "message"}``."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    email = db.normalise_email(_text(payload, "email"))
    password = _text(payload, "password")
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.get_user_by_email(email)
    if user is None or not check_password_hash(user.password_hash, password):
        logger.info("Failed login for %s", email)
        raise AuthError("Invalid credentials")

    token = issue_token(
        {"id": user.id, "role": user.role, "email": user.email},
        secret,
        expires_days=expires_days,
    )
    return {"token": token, "role": user.role, "message": "Login successful"}


__all__ = ["login", "register"]
