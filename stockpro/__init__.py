import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from stockpro.config import Config
from stockpro.db import close_db, driver_errors, init_db, ping_db
from stockpro.db_migrations import register_db_cli
from stockpro.observability import (
    configure_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
)


API_PREFIX = "/api"
_GUARD_EXEMPT_PATHS = {f"{API_PREFIX}/health"}


def create_app(config_class=Config):
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_class)
    configure_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_database_guard(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    app.teardown_appcontext(close_db)
    _maybe_init_schema(app)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", True))
    if app.testing:
        auto_init = True
    if not auto_init:
        return

    with app.app_context():
        try:
            init_db()
        except (driver_errors() + (OSError, RuntimeError)) as exc:
            # The app still boots; the database guard answers 500 on /api/*.
            app.logger.error(
                "database_init_failed",
                extra={"db_path": app.config.get("DB_PATH"), "details": str(exc)},
            )


def _is_api_path(path: str) -> bool:
    return path == API_PREFIX or path.startswith(f"{API_PREFIX}/")


def _register_database_guard(app: Flask) -> None:
    @app.before_request
    def _database_guard() -> None:
        if not _is_api_path(request.path) or request.path in _GUARD_EXEMPT_PATHS:
            return
        ping_db()


def _register_blueprints(app: Flask) -> None:
    from stockpro.routes.entries_routes import api_bp
    from stockpro.routes.home_routes import home_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(home_bp)


def _register_error_handlers(app: Flask) -> None:
    from stockpro.errors import AppError, RouteNotFoundError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        return observe_response(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        if not _is_api_path(request.path) or exc.code not in (404, 405):
            return exc
        request_id = ensure_request_id()
        mapped = RouteNotFoundError(details=f"Route {request.method} {request.path} not found")
        _log_error(mapped, request_id)
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_health(app: Flask) -> None:
    from stockpro.errors import StorageError

    @app.route(f"{API_PREFIX}/health")
    def health():
        try:
            ping_db()
            database_ok = True
        except StorageError:
            database_ok = False
        payload = {
            "status": "ok",
            "database": database_ok,
            "env": app.config.get("ENV_NAME", "local"),
            "metrics": {
                "http": metrics_snapshot(),
            },
        }
        return payload, 200
