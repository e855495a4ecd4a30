import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .models import User  # noqa: E402,F401
from .shared.dispatch import side_effects  # noqa: E402
from .shared.errors import PlanningError  # noqa: E402


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning("ignoring non-integer %s=%r", name, raw)
        return default


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    DB_USER = os.getenv("DB_USER", "planner")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "planner")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["ORG_TIMEZONE"] = os.getenv("ORG_TIMEZONE", "Africa/Tunis")
    app.config["SIDE_EFFECT_WORKERS"] = _env_int("SIDE_EFFECT_WORKERS", 2)
    app.config["CERTIFICATE_PREFIX"] = os.getenv("CERTIFICATE_PREFIX", "CERT")
    app.config["CERTIFICATE_ORG_NAME"] = os.getenv(
        "CERTIFICATE_ORG_NAME", "Training Center"
    )
    app.config["CERTIFICATE_TEMPLATE"] = os.getenv("CERTIFICATE_TEMPLATE") or None
    if overrides:
        app.config.update(overrides)

    try:
        ZoneInfo(app.config["ORG_TIMEZONE"])
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(
            f"Unknown ORG_TIMEZONE {app.config['ORG_TIMEZONE']!r}"
        ) from exc

    app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    db.init_app(app)
    side_effects.init_app(app)

    @app.errorhandler(PlanningError)
    def handle_planning_error(exc: PlanningError):
        db.session.rollback()
        app.logger.info(
            "[REQUEST-FAIL] kind=%s error=\"%s\" context=%s",
            exc.kind,
            exc.message,
            exc.context,
        )
        return jsonify(exc.to_dict()), exc.status_code

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    from .routes.seances import bp as seances_bp
    from .routes.certificates import bp as certificates_bp
    from .routes.attendance import bp as attendance_bp
    from .routes.notifications import bp as notifications_bp

    app.register_blueprint(seances_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(notifications_bp)

    return app
