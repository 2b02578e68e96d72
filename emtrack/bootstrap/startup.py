from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from emtrack.infrastructure.db.engine import get_engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "infrastructure" / "db" / "migrations"


def check_startup_prerequisites(db_file: Path) -> bool:
    if not MIGRATIONS_DIR.exists():
        logger.error("Migrations directory is missing: %s", MIGRATIONS_DIR)
        return False
    try:
        test_file = db_file.parent / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError:
        logger.exception("No write access to database directory %s", db_file.parent)
        return False
    return True


def alembic_config(database_url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def run_migrations(database_url: str, log_dir: Path, db_file: Path) -> bool:
    try:
        command.upgrade(alembic_config(database_url), "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = log_dir / "migration_error.log"
            error_path.parent.mkdir(parents=True, exist_ok=True)
            with error_path.open("a", encoding="utf-8") as handle:
                handle.write("\n--- Migration error ---\n")
                handle.write(f"DB: {db_file}\n")
                handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
                handle.write(traceback.format_exc())
        except OSError:
            logger.exception("Failed to write migration error log")
        return False


def ensure_schema(database_url: str) -> bool:
    inspector = inspect(get_engine(database_url))
    if "kv_store" not in inspector.get_table_names():
        logger.error("Database schema is missing the kv_store table")
        return False
    return True


def initialize_database(*, db_file: Path, database_url: str, log_dir: Path) -> bool:
    if not check_startup_prerequisites(db_file):
        return False
    if not run_migrations(database_url, log_dir, db_file):
        return False
    return ensure_schema(database_url)


def seed_core_data(container: Any) -> None:
    """Seed the super administrator and default config. Safe on every start."""
    container.auth_service.initialize()
    config = container.auth_service.get_system_config()
    if config.show_default_admin:
        logger.warning(
            "Default administrator login is advertised on the sign-in screen; "
            "change its PIN and disable showDefaultAdmin for production use"
        )
