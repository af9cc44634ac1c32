"""HTTP routes for authentication, submissions and admin queries."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import Blueprint, Response, current_app, jsonify, request

from core import accounts, passwords, queries
from core.auth import require_admin, require_auth
from core.cycles import count_participation
from core.errors import ValidationError
from core.mailer import Mailer
from core.row_store import RowStore
from core.submissions import SubmissionHandler
from settings import AppSettings

logger = logging.getLogger(__name__)

EXTENSION_KEY = "batterylog"


@dataclass
class Services:
    settings: AppSettings
    store: RowStore
    mailer: Mailer


def services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def _json_body() -> Any:
    return request.get_json(silent=True)


def _query(name: str) -> Optional[str]:
    value = request.args.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# /auth
# ---------------------------------------------------------------------------
auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/register")
def register():
    accounts.register(_json_body())
    return jsonify({"message": "User registered successfully"}), 201


@auth_bp.post("/login")
def login():
    settings = services().settings
    result = accounts.login(
        _json_body(),
        secret=current_app.config.get("JWT_SECRET", ""),
        expires_days=settings.jwt_expires_days,
    )
    return jsonify(result)


@auth_bp.post("/forgot-password")
def forgot_password():
    svc = services()
    message = passwords.request_password_reset(_json_body(), svc.mailer, svc.settings)
    return jsonify({"message": message})


@auth_bp.post("/reset-password")
def reset_password():
    svc = services()
    message = passwords.reset_password(_json_body(), svc.mailer, svc.settings)
    return jsonify({"message": message})


# ---------------------------------------------------------------------------
# /rows
# ---------------------------------------------------------------------------
rows_bp = Blueprint("rows", __name__, url_prefix="/rows")


@rows_bp.post("")
@require_auth
def add_row():
    result = SubmissionHandler(services().store).submit(_json_body())
    return jsonify(result.to_json()), 201


@rows_bp.get("/cycles")
@require_auth
def battery_cycles():
    battery_id = _query("batteryId")
    if battery_id is None:
        raise ValidationError("batteryId query param required")
    cycles = count_participation(services().store, battery_id)
    return jsonify({"batteryId": battery_id, "cycles": cycles})


# ---------------------------------------------------------------------------
# /admin
# ---------------------------------------------------------------------------
admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/rows")
@require_admin
def all_rows():
    return jsonify(queries.list_rows(services().store))


@admin_bp.get("/rows/search")
@require_admin
def search_rows():
    battery_id = _query("batteryId")
    if battery_id is None:
        raise ValidationError("batteryId query param required")
    return jsonify(queries.search_by_battery_id(services().store, battery_id))


@admin_bp.get("/rows/by-date")
@require_admin
def rows_by_date():
    rows = queries.rows_by_date(
        services().store,
        date=_query("date"),
        date_from=_query("dateFrom"),
        date_to=_query("dateTo"),
    )
    return jsonify(rows)


@admin_bp.get("/rows/export")
@require_admin
def export_rows():
    filters: Dict[str, Optional[str]] = {
        "battery_id": _query("batteryId"),
        "date": _query("date"),
        "date_from": _query("dateFrom"),
        "date_to": _query("dateTo"),
    }
    rows = queries.export_rows(services().store, **filters)
    filename = queries.export_filename(**filters)
    logger.info("Exporting %d row(s) as %s", len(rows), filename)
    return Response(
        queries.export_csv(rows),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


BLUEPRINTS = (auth_bp, rows_bp, admin_bp)

__all__ = ["BLUEPRINTS", "EXTENSION_KEY", "Services", "services"]
