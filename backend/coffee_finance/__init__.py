# backend/coffee_finance/__init__.py
from __future__ import annotations

from typing import Any, Mapping

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.pricing import pricing_bp
    from .routes.payments import payments_bp
    from .routes.cash import cash_bp
    from .routes.approvals import approvals_bp

    app.register_blueprint(pricing_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(approvals_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
