from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS

from config import get_settings_module

from .container import Container, build_container
from .database.bootstrap import apply_schema, ensure_default_templates, list_tables
from .errors import register_error_handlers
from .guardians.controller import register as register_guardians
from .importer.controller import register as register_import
from .messaging.controller import register as register_messaging
from .qr.controller import register as register_qr
from .scans.controller import register as register_scans
from .settings.controller import register as register_settings
from .students.controller import register as register_students
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "https://www.kumonnorthhobartapp.com",
    "https://kumonnorthhobartapp.com",
    "http://localhost:5173",
    "http://localhost:3000",
]


def cors_origins(raw: str | None) -> list[str]:
    """Comma separated origins (trailing slashes ignored), or the defaults."""
    origins = [o.strip().rstrip("/") for o in (raw or "").split(",") if o.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


def register_routes(app: Flask, container: Container) -> None:
    @app.get("/", endpoint="index")
    def index():
        return jsonify({"ok": True, "message": "Tutor check-in API is running"})

    register_users(app, container)
    register_students(app, container)
    register_guardians(app, container)
    register_qr(app, container)
    register_scans(app, container)
    register_messaging(app, container)
    register_settings(app, container)
    register_import(app, container)


def create_app(container: Container | None = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.json.sort_keys = False

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    CORS(
        app,
        origins=cors_origins(getattr(settings, "CORS_ALLOWED_ORIGINS", "")),
        methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        supports_credentials=True,
    )

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            ensure_default_templates(db_config)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        container = build_container(db_config=db_config, settings=settings)

    register_error_handlers(app)
    register_routes(app, container)
    return app
