from __future__ import annotations

import json
from pathlib import Path

from werkzeug.security import check_password_hash, generate_password_hash

import db
import users_cli


def test_seed_admin_is_idempotent(tmp_path: Path, monkeypatch, capsys) -> None:
    database = tmp_path / "users.db"
    monkeypatch.setenv("ADMIN_EMAIL", "boss@example.com")
    monkeypatch.setenv("ADMIN_PASS", "boss-pass")

    assert users_cli.main(["--database", str(database), "seed-admin"]) == 0
    assert users_cli.main(["--database", str(database), "seed-admin"]) == 0

    output = capsys.readouterr().out
    assert "Default admin created." in output
    assert "Admin already exists" in output
    admin = db.get_user_by_email("boss@example.com")
    assert admin.is_admin
    assert check_password_hash(admin.password_hash, "boss-pass")


def test_import_users_skips_existing_and_malformed(tmp_path: Path, capsys) -> None:
    database = tmp_path / "users.db"
    source = tmp_path / "users.json"
    source.write_text(
        json.dumps(
            [
                {"name": "Plain", "email": "plain@example.com", "password": "secret"},
                {
                    "name": "Hashed",
                    "email": "Hashed@Example.com",
                    "password": generate_password_hash("already"),
                    "role": "admin",
                    "createdAt": "2024-05-01T10:00:00+00:00",
                },
                {"name": "Broken"},
                {"name": "Again", "email": "plain@example.com", "password": "other"},
            ]
        ),
        encoding="utf-8",
    )

    assert users_cli.main(["--database", str(database), "import-users", str(source)]) == 0

    captured = capsys.readouterr()
    assert "2 new user(s) added" in captured.out
    assert "Skipping existing user: plain@example.com" in captured.out
    assert "Skipping malformed entry" in captured.err

    plain = db.get_user_by_email("plain@example.com")
    assert check_password_hash(plain.password_hash, "secret")
    hashed = db.get_user_by_email("hashed@example.com")
    assert hashed.role == "admin"
    assert hashed.created_at == "2024-05-01T10:00:00+00:00"
    assert check_password_hash(hashed.password_hash, "already")


def test_import_users_reports_invalid_json(tmp_path: Path, capsys) -> None:
    source = tmp_path / "users.json"
    source.write_text("{not json", encoding="utf-8")

    assert users_cli.main(["--database", str(tmp_path / "users.db"), "import-users", str(source)]) == 1
    assert "not valid JSON" in capsys.readouterr().err


def test_list_users(tmp_path: Path, capsys) -> None:
    database = tmp_path / "users.db"
    db.set_database_path(database)
    db.create_user("Zed", "zed@example.com", "hash", "admin")

    assert users_cli.main(["--database", str(database), "list-users"]) == 0

    assert "zed@example.com\tadmin\tZed" in capsys.readouterr().out
