from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from flask import Flask

from .extensions import db, migrate, csrf
from .repositories.base import GroupRepository
from .repositories.json_repository import JsonGroupRepository
from .repositories.sql_repository import SqlGroupRepository
from .security import assignment_fernet
from .services.assignments import MAX_ATTEMPTS
from .services.groups import GroupService
from .services.notifications import NotificationDispatcher, build_sender
from .views.api import api_bp
from .views.groups import groups_bp
from .views.public import public_bp


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _build_repository(app: Flask) -> GroupRepository:
    fernet = assignment_fernet(app.config)
    storage = (app.config.get("SANTA_STORAGE") or "sql").strip().lower()

    if storage == "json":
        return JsonGroupRepository(Path(app.config["SANTA_DATA_FILE"]), fernet)
    if storage == "sql":
        with app.app_context():
            db.create_all()
        return SqlGroupRepository(fernet)
    raise ValueError(f"Unknown SANTA_STORAGE {storage!r} (expected 'sql' or 'json').")


def create_app(test_config: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///secretsanta.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Storage back end: "sql" (SQLAlchemy) or "json" (single flat file)
    app.config["SANTA_STORAGE"] = os.environ.get("SANTA_STORAGE", "sql")
    app.config["SANTA_DATA_FILE"] = os.environ.get("SANTA_DATA_FILE", "data/groups.json")

    # Links in e-mails and API responses; falls back to the request host
    app.config["SANTA_BASE_URL"] = os.environ.get("SANTA_BASE_URL", "").strip()
    app.config["SANTA_MAX_ATTEMPTS"] = int(os.environ.get("SANTA_MAX_ATTEMPTS", MAX_ATTEMPTS))
    app.config["ASSIGNMENT_ENC_KEY"] = os.environ.get("ASSIGNMENT_ENC_KEY", "")

    app.config["SANTA_MAIL_BACKEND"] = os.environ.get("SANTA_MAIL_BACKEND", "console")
    app.config["SANTA_MAIL_FROM"] = os.environ.get("SANTA_MAIL_FROM", "")
    app.config["SANTA_MAIL_INTERVAL"] = float(os.environ.get("SANTA_MAIL_INTERVAL", "1.0"))
    app.config["SANTA_SMTP_HOST"] = os.environ.get("SANTA_SMTP_HOST", "")
    app.config["SANTA_SMTP_PORT"] = int(os.environ.get("SANTA_SMTP_PORT", "587"))
    app.config["SANTA_SMTP_USERNAME"] = os.environ.get("SANTA_SMTP_USERNAME", "")
    app.config["SANTA_SMTP_PASSWORD"] = os.environ.get("SANTA_SMTP_PASSWORD", "")
    app.config["SANTA_SMTP_USE_STARTTLS"] = _env_flag("SANTA_SMTP_USE_STARTTLS")
    app.config["SENDGRID_API_KEY"] = os.environ.get("SENDGRID_API_KEY", "")

    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    app.extensions["santagroups.groups"] = GroupService(
        _build_repository(app),
        max_attempts=app.config["SANTA_MAX_ATTEMPTS"],
    )
    app.extensions["santagroups.notifier"] = NotificationDispatcher(
        build_sender(app.config),
        min_interval=app.config["SANTA_MAIL_INTERVAL"],
    )

    # Blueprints
    csrf.exempt(api_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(api_bp)

    app.logger.info("Secret Santa groups ready (storage=%s)", app.config["SANTA_STORAGE"])
    return app
