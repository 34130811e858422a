# backend/storefront/__init__.py
from flask import Flask, request

from .config import Config, engine_options_for
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None, **service_overrides) -> Flask:
    """
    Application factory.

    config_overrides are applied before extensions initialize, so tests can
    point SQLALCHEMY_DATABASE_URI at a temporary database. service_overrides
    (assets, notifier, identity) replace the default collaborators.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(app.config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One set of stores per process, sharing the app's engine and pool
    from .services import build_services
    app.extensions["storefront"] = build_services(app.config, **service_overrides)

    # Register blueprints
    from .routes import register_error_handlers
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.categories import categories_bp
    from .routes.logos import logos_bp
    from .routes.customizations import customizations_bp
    from .routes.cart import cart_bp
    from .routes.orders import orders_bp
    from .routes.addresses import addresses_bp
    from .routes.positions import positions_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(logos_bp)
    app.register_blueprint(customizations_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(addresses_bp)
    app.register_blueprint(positions_bp)
    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
