from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .database.connection import DBConfig
from .sessions.controller import register as register_sessions

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
CONSOLE_HANDLER_NAME = "geo_attendance.console"

logger = logging.getLogger(__name__)


def configure_logging(level: str | int = "INFO") -> None:
    """Attach one console handler to the package logger (idempotent)."""

    package_logger = logging.getLogger(__name__.rsplit(".", 1)[0])
    package_logger.setLevel(level)
    if not any(h.get_name() == CONSOLE_HANDLER_NAME for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(CONSOLE_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


def create_app(*, container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            config = DBConfig.from_mapping(db_config)
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(config, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(config)))

        container = build_container(
            db_config=db_config,
            default_radius_m=getattr(settings, "DEFAULT_RADIUS_M", 5.0),
            default_duration_minutes=getattr(settings, "DEFAULT_DURATION_MINUTES", 60),
        )

    app.extensions["geo_attendance"] = container

    register_sessions(app, container)
    register_attendance(app, container)

    return app
