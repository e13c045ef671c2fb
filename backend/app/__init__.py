# backend/app/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app binds the engine
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
    from .routes.merchants import merchants_bp
    from .routes.catalog import catalog_bp
    from .routes.products import products_bp
    from .routes.orders import orders_bp
    from .routes.subscription import subscription_bp, billing_bp
    from .routes.team import team_bp
    from .routes.ads import ads_bp
    from .routes.admin import admin_bp  # Platform admin: catalog, plans, merchants

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(merchants_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(ads_bp)
    app.register_blueprint(admin_bp)

    if app.config.get("FREE_FOR_LIFE_THRESHOLD_CENTS") is None:
        app.logger.warning(
            "FREE_FOR_LIFE_THRESHOLD_CENTS is not set; sales booking and progress endpoints will fail"
        )

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Billing-Signature"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
