# backend/gstbill/__init__.py
from flask import Flask, jsonify, current_app
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import BillingError
from .extensions import db, migrate
from .services.permission_service import PermissionDeniedError


def register_error_handlers(app: Flask) -> None:
    """Domain errors become JSON {"error", "details"} with their own status codes."""

    @app.errorhandler(BillingError)
    def handle_billing_error(e: BillingError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e: PermissionDeniedError):
        return jsonify(e.to_dict()), 403

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.items import items_bp
    from .routes.invoices import invoices_bp
    from .routes.purchases import purchases_bp
    from .routes.parties import parties_bp
    from .routes.reports import reports_bp
    from .routes.audit import audit_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(parties_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(audit_bp)

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
