"""Flask application factory and entry point for the battery log backend."""
from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import db
from core.errors import BatteryLogError
from core.logging_config import configure_logging
from core.mailer import Mailer
from core.row_store import RowStore
from core.sheets_client import build_row_store
from routes import BLUEPRINTS, EXTENSION_KEY, Services
from settings import AppSettings, load_settings

logger = logging.getLogger(__name__)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BatteryLogError)
    def handle_battery_log_error(exc: BatteryLogError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        return jsonify({"message": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error"}), 500


def _register_request_logging(app: Flask) -> None:
    @app.before_request
    def start_timer() -> None:
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop("request_started", None)
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        logger.info("%s %s %s %.1fms", request.method, request.path, response.status_code, elapsed_ms)
        return response


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    store: Optional[RowStore] = None,
    mailer: Optional[Mailer] = None,
    seed_admin: bool = True,
) -> Flask:
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config.update(
        JWT_SECRET=settings.jwt_secret,
        MAX_CONTENT_LENGTH=5 * 1024 * 1024,
    )
    CORS(app, origins=settings.cors_origins, supports_credentials=True)

    db.set_database_path(settings.database_path)
    db.initialize_database()
    if seed_admin:
        db.ensure_admin(settings.admin)

    app.extensions[EXTENSION_KEY] = Services(
        settings=settings,
        store=store if store is not None else build_row_store(settings.sheet),
        mailer=mailer if mailer is not None else Mailer(settings.mail),
    )

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    @app.get("/")
    def index():
        return "Battery Log Backend is Running"

    _register_error_handlers(app)
    _register_request_logging(app)

    for name in settings.missing_configuration():
        logger.warning("Configuration missing: %s", name)
    return app


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_file)
    try:
        app = create_app(settings)
    except Exception:
        logger.exception("Startup failed")
        raise SystemExit(1)
    logger.info("Server running on port %s", settings.port)
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
