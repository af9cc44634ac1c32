from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from werkzeug.security import check_password_hash

import db
from core.errors import ValidationError
from settings import AdminSeed


def test_initialize_database_creates_users_table(user_db: Path) -> None:
    assert user_db.exists()
    conn = sqlite3.connect(user_db)
    try:
        columns = {row[1] for row in conn.execute("PRAGMA table_info(users)")}
    finally:
        conn.close()
    assert set(db.USER_COLUMN_DEFINITIONS) <= columns


def test_missing_columns_are_added_to_older_files(tmp_path: Path) -> None:
    path = tmp_path / "old.db"
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE users (id TEXT PRIMARY KEY, name TEXT NOT NULL, email TEXT NOT NULL UNIQUE, "
        "password_hash TEXT NOT NULL, role TEXT NOT NULL DEFAULT 'user', created_at TEXT NOT NULL)"
    )
    conn.commit()
    conn.close()

    db.set_database_path(path)
    db.initialize_database()

    user = db.create_user("Bob", "bob@example.com", "hash")
    assert user.reset_otp_attempts == 0
    assert user.reset_otp_hash is None


def test_create_user_normalises_email_and_rejects_duplicates(user_db: Path) -> None:
    user = db.create_user(" Alice ", "  Alice@Example.COM ", "hash")

    assert user.email == "alice@example.com"
    assert user.name == "Alice"
    assert user.role == "user"
    assert db.get_user_by_email("ALICE@example.com").id == user.id

    with pytest.raises(ValidationError) as excinfo:
        db.create_user("Other", "alice@example.com", "hash")
    assert str(excinfo.value) == "User already exists"


def test_create_user_rejects_unknown_role(user_db: Path) -> None:
    with pytest.raises(ValidationError):
        db.create_user("Eve", "eve@example.com", "hash", "owner")


def test_reset_code_helpers(user_db: Path) -> None:
    user = db.create_user("Carol", "carol@example.com", "hash")
    expires = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    db.set_reset_otp(user.id, "digest", expires)
    assert db.increment_reset_attempts(user.id) == 1
    assert db.increment_reset_attempts(user.id) == 2

    stored = db.get_user_by_id(user.id)
    assert stored.reset_otp_hash == "digest"
    assert stored.reset_otp_expires == expires
    assert stored.reset_otp_attempts == 2

    db.clear_reset_otp(user.id)
    cleared = db.get_user_by_id(user.id)
    assert cleared.reset_otp_hash is None
    assert cleared.reset_otp_attempts == 0


def test_update_password_clears_pending_code(user_db: Path) -> None:
    user = db.create_user("Dan", "dan@example.com", "old")
    db.set_reset_otp(user.id, "digest", datetime.now(timezone.utc) + timedelta(minutes=5))

    db.update_password(user.id, "new")

    stored = db.get_user_by_id(user.id)
    assert stored.password_hash == "new"
    assert stored.reset_otp_hash is None
    assert stored.reset_otp_expires is None


def test_ensure_admin_is_idempotent(user_db: Path, caplog) -> None:
    seed = AdminSeed(email="Root@Example.com", password="123456", name="Root", password_from_env=False)

    assert db.ensure_admin(seed) is True
    assert "built-in password" in caplog.text
    assert db.ensure_admin(seed) is False

    admin = db.get_user_by_email("root@example.com")
    assert admin.is_admin
    assert check_password_hash(admin.password_hash, "123456")
    assert len(db.list_users()) == 1


def test_ensure_admin_does_not_promote_existing_user(user_db: Path) -> None:
    db.create_user("Plain", "plain@example.com", "hash")
    seed = AdminSeed(email="plain@example.com", password="pw", name="Admin", password_from_env=True)

    assert db.ensure_admin(seed) is False
    assert db.get_user_by_email("plain@example.com").role == "user"
