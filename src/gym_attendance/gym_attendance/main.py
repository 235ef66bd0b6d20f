from __future__ import annotations

import atexit
import importlib
import logging
from pathlib import Path
from types import ModuleType
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import build_container
from .core.constants import DEFAULT_DASHBOARD_REFRESH_SECONDS, MEMBERS_COLLECTION
from .core.enums import StoreBackend
from .core.exceptions import StoreError
from .database.bootstrap import DOCUMENTS_TABLE, apply_schema, list_tables, seed_documents

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]


def create_app(settings: Optional[ModuleType] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    if settings is None:
        settings = importlib.import_module(settings_module)

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    store_config = dict(getattr(settings, "STORE_CONFIG"))
    is_mysql = str(store_config.get("backend", StoreBackend.MYSQL.value)).lower() == StoreBackend.MYSQL.value

    logger.info(
        "settings=%s store=%s",
        settings.__name__,
        f"{store_config.get('user')}@{store_config.get('host')}:{store_config.get('port', 3306)}/{store_config.get('database')}"
        if is_mysql
        else store_config.get("backend"),
    )

    if is_mysql and bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(store_config, schema_path=REPO_ROOT / "database" / "schema.sql")
        tables = list_tables(store_config)
        if DOCUMENTS_TABLE not in tables:
            raise StoreError(f"Schema applied but table {DOCUMENTS_TABLE!r} is missing")
        logger.info("schema ready (tables=%d)", len(tables))

    container = build_container(
        store_config=store_config,
        collection=getattr(settings, "MEMBERS_COLLECTION", MEMBERS_COLLECTION),
        dashboard_refresh_seconds=float(getattr(settings, "DASHBOARD_REFRESH_SECONDS", DEFAULT_DASHBOARD_REFRESH_SECONDS)),
    )

    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        count = seed_documents(container.store, seed_path=REPO_ROOT / "database" / "seed.json")
        logger.info("demo seed ready (%d documents)", count)

    register_attendance(app, container)
    app.extensions["gym_attendance"] = container

    if container.dashboard_refresher is not None and not app.config["TESTING"]:
        container.dashboard_refresher.start()
    atexit.register(container.close)

    return app
