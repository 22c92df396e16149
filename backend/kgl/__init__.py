# backend/kgl/__init__.py
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import KGLError, StorageError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.auth import auth_bp
    from .routes.branches import branches_bp
    from .routes.users import users_bp
    from .routes.suppliers import suppliers_bp
    from .routes.produce import produce_bp
    from .routes.procurement import procurement_bp
    from .routes.sales import sales_bp
    from .routes.credit_sales import credit_sales_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(branches_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(produce_bp)
    app.register_blueprint(procurement_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(credit_sales_bp)

    @app.errorhandler(KGLError)
    def handle_kgl_error(e: KGLError):
        if isinstance(e, StorageError):
            app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "kind": "internal_error", "details": {}}), 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ORIGINS", set()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
