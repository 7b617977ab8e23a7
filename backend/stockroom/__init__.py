# backend/stockroom/__init__.py
from flask import Flask, request
from sqlalchemy import inspect
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


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
    from .routes.access_levels import access_levels_bp
    from .routes.users import users_bp
    from .routes.products import products_bp
    from .routes.movements import movements_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(access_levels_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(movements_bp)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # JSON bodies for routing errors (404/405) and malformed requests (400)
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {"error": e.description}, e.code

    from .services.mail_service import init_mail
    init_mail(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("BOOTSTRAP_ON_STARTUP"):
        _bootstrap_on_startup(app)

    return app


def _bootstrap_on_startup(app: Flask) -> None:
    """Seed system levels and the admin account once the schema exists."""
    from .services.bootstrap_service import bootstrap_defaults

    with app.app_context():
        if not inspect(db.engine).has_table("access_levels"):
            app.logger.warning(
                "Database schema missing; run 'flask db upgrade' or 'flask system init'"
            )
            return
        bootstrap_defaults()
