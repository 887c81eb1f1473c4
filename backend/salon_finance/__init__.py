# backend/salon_finance/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        # Must land before db.init_app: the engine is built from the URI there
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.accounts import accounts_bp
    from .routes.transactions import transactions_bp, transfers_bp
    from .routes.registers import sessions_bp
    from .routes.sales import sales_bp
    from .routes.expenses import expense_categories_bp, vendors_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(expense_categories_bp)
    app.register_blueprint(vendors_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
