"""SQLite-backed user store for the battery log backend."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from werkzeug.security import generate_password_hash

from core.errors import ValidationError
from settings import DEFAULT_DB_PATH, AdminSeed

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Database path handling
# ---------------------------------------------------------------------------
_DB_PATH = Path(DEFAULT_DB_PATH).resolve()

_SCHEMA_LOCK = threading.Lock()
_SCHEMA_READY = False

ROLES = ("user", "admin")

USER_COLUMN_DEFINITIONS: Dict[str, str] = {
    "id": "TEXT PRIMARY KEY",
    "name": "TEXT NOT NULL",
    "email": "TEXT NOT NULL UNIQUE",
    "password_hash": "TEXT NOT NULL",
    "role": "TEXT NOT NULL DEFAULT 'user'",
    "created_at": "TEXT NOT NULL",
    "reset_otp_hash": "TEXT",
    "reset_otp_expires": "TEXT",
    "reset_otp_attempts": "INTEGER NOT NULL DEFAULT 0",
}


@dataclass
class User:
    id: str
    name: str
    email: str
    password_hash: str
    role: str
    created_at: str
    reset_otp_hash: Optional[str] = None
    reset_otp_expires: Optional[datetime] = None
    reset_otp_attempts: int = 0

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ---------------------------------------------------------------------------
# Database helpers
# ---------------------------------------------------------------------------

def set_database_path(path: Path) -> None:
    """Override the SQLite file used for storage."""

    global _DB_PATH, _SCHEMA_READY
    _DB_PATH = Path(path).resolve()
    _SCHEMA_READY = False


def get_database_path() -> Path:
    return _DB_PATH


def _ensure_schema(conn: sqlite3.Connection) -> None:
    user_columns = ",\n        ".join(
        f"{column} {definition}" for column, definition in USER_COLUMN_DEFINITIONS.items()
    )
    conn.execute(f"CREATE TABLE IF NOT EXISTS users (\n        {user_columns}\n    )")

    existing = {row[1] for row in conn.execute("PRAGMA table_info(users)")}
    for column, definition in USER_COLUMN_DEFINITIONS.items():
        if column not in existing:
            conn.execute(f"ALTER TABLE users ADD COLUMN {column} {definition}")

    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)")


def _ensure_database() -> None:
    global _SCHEMA_READY
    if _SCHEMA_READY:
        return
    with _SCHEMA_LOCK:
        if _SCHEMA_READY:
            return
        if _DB_PATH.parent:
            _DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(_DB_PATH)
        try:
            _ensure_schema(conn)
            conn.commit()
        finally:
            conn.close()
        _SCHEMA_READY = True


def get_connection() -> sqlite3.Connection:
    _ensure_database()
    conn = sqlite3.connect(_DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    conn = get_connection()
    try:
        conn.execute("BEGIN")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def initialize_database() -> Path:
    """Create the user table if needed and return the database path."""

    _ensure_database()
    return _DB_PATH


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _utc_now_iso() -> str:
    return _utc_now().isoformat()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def normalise_email(email: str) -> str:
    return str(email or "").strip().lower()


def _row_to_user(row: Optional[sqlite3.Row]) -> Optional[User]:
    if row is None:
        return None
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=row["role"],
        created_at=row["created_at"],
        reset_otp_hash=row["reset_otp_hash"],
        reset_otp_expires=_parse_timestamp(row["reset_otp_expires"]),
        reset_otp_attempts=int(row["reset_otp_attempts"] or 0),
    )


def get_user_by_email(email: str) -> Optional[User]:
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (normalise_email(email),)
        ).fetchone()
    finally:
        conn.close()
    return _row_to_user(row)


def get_user_by_id(user_id: str) -> Optional[User]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    finally:
        conn.close()
    return _row_to_user(row)


def list_users() -> List[User]:
    conn = get_connection()
    try:
        rows = conn.execute("SELECT * FROM users ORDER BY created_at, email").fetchall()
    finally:
        conn.close()
    return [user for user in (_row_to_user(row) for row in rows) if user is not None]


def create_user(
    name: str,
    email: str,
    password_hash: str,
    role: str = "user",
    *,
    created_at: Optional[str] = None,
) -> User:
    """Insert a user; raises :class:`ValidationError` when the e-mail is taken."""

    role = role or "user"
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    user_id = uuid.uuid4().hex
    email = normalise_email(email)
    try:
        with transaction() as conn:
            conn.execute(
                "INSERT INTO users (id, name, email, password_hash, role, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, name.strip(), email, password_hash, role, created_at or _utc_now_iso()),
            )
    except sqlite3.IntegrityError as exc:
        raise ValidationError("User already exists") from exc
    logger.info("Created %s account for %s", role, email)
    user = get_user_by_id(user_id)
    assert user is not None
    return user


def update_password(user_id: str, password_hash: str) -> None:
    with transaction() as conn:
        conn.execute(
            "UPDATE users SET password_hash = ?, reset_otp_hash = NULL, "
            "reset_otp_expires = NULL, reset_otp_attempts = 0 WHERE id = ?",
            (password_hash, user_id),
        )


def set_reset_otp(user_id: str, otp_hash: str, expires: datetime) -> None:
    with transaction() as conn:
        conn.execute(
            "UPDATE users SET reset_otp_hash = ?, reset_otp_expires = ?, "
            "reset_otp_attempts = 0 WHERE id = ?",
            (otp_hash, expires.astimezone(timezone.utc).isoformat(), user_id),
        )


def clear_reset_otp(user_id: str) -> None:
    with transaction() as conn:
        conn.execute(
            "UPDATE users SET reset_otp_hash = NULL, reset_otp_expires = NULL, "
            "reset_otp_attempts = 0 WHERE id = ?",
            (user_id,),
        )


def increment_reset_attempts(user_id: str) -> int:
    with transaction() as conn:
        conn.execute(
            "UPDATE users SET reset_otp_attempts = reset_otp_attempts + 1 WHERE id = ?",
            (user_id,),
        )
        row = conn.execute(
            "SELECT reset_otp_attempts FROM users WHERE id = ?", (user_id,)
        ).fetchone()
    return int(row[0]) if row else 0


def ensure_admin(seed: AdminSeed) -> bool:
    """Create the default admin account unless it already exists.

    Returns ``True`` when an account was created.
    """

    email = normalise_email(seed.email)
    existing = get_user_by_email(email)
    if existing is not None and existing.is_admin:
        logger.info("Admin %s already exists, skipping creation", email)
        return False
    if existing is not None:
        logger.warning("Seed admin e-mail %s belongs to a non-admin account; not promoting", email)
        return False

    create_user(seed.name, email, generate_password_hash(seed.password), "admin")
    if not seed.password_from_env:
        logger.warning("Default admin %s created with the built-in password; set ADMIN_PASS", email)
    else:
        logger.info("Default admin %s created", email)
    return True


__all__ = [
    "ROLES",
    "User",
    "clear_reset_otp",
    "create_user",
    "ensure_admin",
    "get_connection",
    "get_database_path",
    "get_user_by_email",
    "get_user_by_id",
    "increment_reset_attempts",
    "initialize_database",
    "list_users",
    "normalise_email",
    "set_database_path",
    "set_reset_otp",
    "transaction",
    "update_password",
]
