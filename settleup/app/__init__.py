"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to load the metadata without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow, activity dispatcher)
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a custom JSON provider to serialise Decimal as string
     (the *_display amounts are never sent as JS numbers)

Note on model imports:
  All model modules are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from settleup.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from settleup.app.extensions import activity_dispatcher, db, ma
    from settleup.app.services import activity_service

    db.init_app(app)
    ma.init_app(app)
    activity_dispatcher.init_app(app, handler=activity_service.deliver)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from settleup.app.models import (  # noqa: F401
            activity,
            expense,
            friendship,
            participant,
            settlement,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    app.logger.info("SettleUp app created with %s config.", config_name)
    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the app logger and the `settleup` package loggers.
    Services log through logging.getLogger(__name__), so they inherit it.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)

    package_logger = logging.getLogger("settleup")
    package_logger.setLevel(level)
    if not package_logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
        package_logger.addHandler(handler)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Blueprint names match the route files in app/routes/.
    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "" and "/<int:id>").
    """
    from settleup.app.routes.activities import activities_bp
    from settleup.app.routes.auth import auth_bp
    from settleup.app.routes.balances import balances_bp
    from settleup.app.routes.expenses import expenses_bp
    from settleup.app.routes.friends import friends_bp
    from settleup.app.routes.settlements import settlements_bp
    from settleup.app.routes.users import users_bp

    app.register_blueprint(auth_bp,        url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1/expenses")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/settlements")
    app.register_blueprint(balances_bp,    url_prefix="/api/v1/balances")
    app.register_blueprint(friends_bp,     url_prefix="/api/v1/friends")
    app.register_blueprint(activities_bp,  url_prefix="/api/v1/activities")


def _first_error(messages, path: tuple = ()) -> tuple[str | None, str]:
    """
    Walks a marshmallow messages structure to its first leaf message.

    {"participants": {1: {"share": ["INVALID_AMOUNT_PRECISION"]}}}
        → ("participants.1.share", "INVALID_AMOUNT_PRECISION")
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            sub_path = path if key == "_schema" else path + (str(key),)
            return _first_error(value, sub_path)
    elif isinstance(messages, list) and messages:
        return _first_error(messages[0], path)
    elif isinstance(messages, str):
        return (".".join(path) or None), messages
    return (".".join(path) or None), "Invalid input."


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP
                        status (ValidationFailure adds a `details` list)
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD / registered-code responses (400)
      StaleDataError  → EXPENSE_VERSION_CONFLICT (409); a concurrent edit
                        moved the version between read and write
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from settleup.app.errors import AppError, ErrorCode

    known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError — they let it propagate here."""
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST schema error only. Business-rule violations are
        reported in full by ValidationFailure instead.

        A message that is itself a registered ErrorCode is used as the code.
        """
        field, raw_message = _first_error(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        response_body = {"error": {"code": code, "message": message}}
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """Unknown routes, wrong methods, unparseable JSON bodies."""
        return jsonify({
            "error": {
                "code": error.name.upper().replace(" ", "_"),
                "message": error.description,
            }
        }), error.code

    @app.errorhandler(StaleDataError)
    def handle_stale_data(error: StaleDataError):
        app.logger.warning("Concurrent modification rejected: %s", error)
        return jsonify({
            "error": {
                "code": ErrorCode.EXPENSE_VERSION_CONFLICT,
                "message": "The expense was modified by someone else. Reload and try again.",
            }
        }), 409

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback is logged to the application logger.
        """
        app.logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.path,
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            # Reflect origin when present so bearer-auth requests from local
            # dev servers are accepted by browsers.
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amounts must have at most 2 decimal places.",
        "INVALID_SPLIT_METHOD": "split_method must be 'equal', 'unequal' or 'percent'.",
        "INVALID_ACTIVITY_KIND": "The activity kind is not valid.",
    }
    return _messages.get(code, "Invalid input.")
