"""Bearer token issuance and Flask route guards."""
from __future__ import annotations

import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

import jwt
from flask import current_app, g, request

from core.errors import AuthError, ForbiddenError, NotConfigured

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "

F = TypeVar("F", bound=Callable[..., Any])


def issue_token(claims: Dict[str, Any], secret: str, *, expires_days: int = 7) -> str:
    """Return a signed token carrying ``claims`` plus an expiry."""

    if not secret:
        raise NotConfigured("Server misconfigured (JWT secret)")
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(days=expires_days)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    if not secret:
        raise NotConfigured("Server misconfigured (JWT secret)")
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthError("Invalid or expired token") from exc


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    value = header_value or ""
    if not value.startswith(BEARER_PREFIX):
        return None
    token = value[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate_request() -> Dict[str, Any]:
    """Verify the current request's bearer token and store its claims on ``g.user``."""

    claims = getattr(g, "user", None)
    if claims is not None:
        return claims
    token = bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthError("No token provided")
    claims = decode_token(token, current_app.config.get("JWT_SECRET", ""))
    g.user = claims
    return claims


def require_auth(view: F) -> F:
    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        authenticate_request()
        return view(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_admin(view: F) -> F:
    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        claims = authenticate_request()
        if claims.get("role") != "admin":
            raise ForbiddenError("Admins only")
        return view(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


__all__ = [
    "ALGORITHM",
    "authenticate_request",
    "bearer_token",
    "decode_token",
    "issue_token",
    "require_admin",
    "require_auth",
]
