from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables

from .container import Container, build_container
from .bursaries.controller import register as register_bursaries
from .finance.controller import register as register_finance
from .onboarding.controller import register as register_onboarding
from .payments.controller import register as register_payments
from .predictions.controller import register as register_predictions
from .receipts.controller import register as register_receipts
from .reports.controller import register as register_reports
from .schools.controller import register as register_schools
from .students.controller import register as register_students
from .subscriptions.controller import register as register_subscriptions
from .trials.controller import register as register_trials
from .users.controller import register as register_users
from .web.responses import api_response, error_response

logger = logging.getLogger("school_management")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(container: Optional[Container] = None) -> Flask:
    """Build the Flask app; pass a ready container to skip database bootstrap."""
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["SESSION_COOKIE_SECURE"] = bool(getattr(settings, "SESSION_COOKIE_SECURE", False))
    _configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        database_dir = Path(__file__).resolve().parents[3] / "database"
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(db_config, schema_path=database_dir / "schema.sql")
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if getattr(settings, "AUTO_SEED_DB", False):
            apply_seed_sql(db_config, seed_path=database_dir / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            session_days=int(getattr(settings, "SESSION_DAYS", 30)),
            session_inactivity_days=int(getattr(settings, "SESSION_INACTIVITY_DAYS", 7)),
            trial_days=int(getattr(settings, "DEFAULT_TRIAL_DAYS", 30)),
            receipt_verify_url=str(getattr(settings, "RECEIPT_VERIFY_URL", "")),
        )

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return api_response({"status": "ok"})

    @app.errorhandler(404)
    def not_found(_):
        return error_response("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_):
        return error_response("Method not allowed", 405)

    register_users(app, container)
    register_schools(app, container)
    register_students(app, container)
    register_finance(app, container)
    register_payments(app, container)
    register_bursaries(app, container)
    register_receipts(app, container)
    register_onboarding(app, container)
    register_trials(app, container)
    register_subscriptions(app, container)
    register_reports(app, container)
    register_predictions(app, container)

    return app
