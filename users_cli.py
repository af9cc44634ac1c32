"""Command line helper for managing battery log user accounts."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

import db
from core.errors import ValidationError
from core.logging_config import configure_logging
from settings import load_settings

_WERKZEUG_HASH_PREFIXES = ("pbkdf2:", "scrypt:")


def _open_database(args: argparse.Namespace) -> None:
    settings = load_settings()
    db.set_database_path(Path(args.database or settings.database_path))
    db.initialize_database()


def command_seed_admin(args: argparse.Namespace) -> int:
    _open_database(args)
    created = db.ensure_admin(load_settings().admin)
    print("Default admin created." if created else "Admin already exists, skipping creation.")
    return 0


def command_import_users(args: argparse.Namespace) -> int:
    _open_database(args)
    path = Path(args.path)
    if not path.exists():
        print(f"No users file found at {path}; nothing to import.")
        return 0

    try:
        users = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"Error: {path} is not valid JSON: {exc.msg}", file=sys.stderr)
        return 1
    if not isinstance(users, list) or not users:
        print("No users found in file.")
        return 0

    inserted = 0
    for entry in users:
        if not isinstance(entry, dict) or not entry.get("email") or not entry.get("password"):
            print(f"Skipping malformed entry: {entry!r}", file=sys.stderr)
            continue
        email = db.normalise_email(entry["email"])
        if db.get_user_by_email(email) is not None:
            print(f"Skipping existing user: {email}")
            continue

        password = str(entry["password"])
        if not password.startswith(_WERKZEUG_HASH_PREFIXES):
            password = generate_password_hash(password)
        try:
            db.create_user(
                str(entry.get("name") or "Unnamed"),
                email,
                password,
                str(entry.get("role") or "user"),
                created_at=entry.get("createdAt"),
            )
        except ValidationError as exc:
            print(f"Skipping {email}: {exc}", file=sys.stderr)
            continue
        inserted += 1
        print(f"Imported user: {email}")

    print(f"Migration complete: {inserted} new user(s) added.")
    return 0


def command_list_users(args: argparse.Namespace) -> int:
    _open_database(args)
    for user in db.list_users():
        print(f"{user.email}\t{user.role}\t{user.name}\t{user.created_at}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Battery log user management tool")
    parser.add_argument("--database", help="SQLite file to use instead of BATTERYLOG_DB_PATH")
    subparsers = parser.add_subparsers(dest="command", required=True)

    seed_parser = subparsers.add_parser("seed-admin", help="Create the default admin account if missing")
    seed_parser.set_defaults(func=command_seed_admin)

    import_parser = subparsers.add_parser("import-users", help="Import users from a JSON list")
    import_parser.add_argument("path", help="JSON file holding [{name, email, password, role}]")
    import_parser.set_defaults(func=command_import_users)

    list_parser = subparsers.add_parser("list-users", help="Print all accounts")
    list_parser.set_defaults(func=command_list_users)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging("WARNING")
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
