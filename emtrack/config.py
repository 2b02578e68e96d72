import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from platformdirs import user_data_dir

APP_NAME = "emtrack"
APP_AUTHOR = "emtrack"

AuditFailurePolicy = Literal["best_effort", "strict"]
IncidentDeletePolicy = Literal["retain", "cascade"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_audit_policy(name: str, default: AuditFailurePolicy) -> AuditFailurePolicy:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in {"best_effort", "strict"}:
        return cast(AuditFailurePolicy, raw)
    return default


def _env_delete_policy(name: str, default: IncidentDeletePolicy) -> IncidentDeletePolicy:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in {"retain", "cascade"}:
        return cast(IncidentDeletePolicy, raw)
    return default


def _resolve_data_dir() -> Path:
    env_dir = os.getenv("EMTRACK_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


DATA_DIR = _resolve_data_dir()
LOG_DIR = DATA_DIR / "logs"
EXPORT_DIR = DATA_DIR / "exports"
DB_FILE = Path(os.getenv("EMTRACK_DB_FILE") or (DATA_DIR / "emtrack.db"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
DB_FILE.parent.mkdir(parents=True, exist_ok=True)


def default_database_url() -> str:
    # SQLite URL uses forward slashes; as_posix() keeps it cross-platform.
    return f"sqlite:///{DB_FILE.as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", default_database_url())
    echo_sql: bool = _env_bool("SQL_ECHO", False)
    # Counted in characters across all keys and values.
    storage_quota_bytes: int = _env_int("EMTRACK_STORAGE_QUOTA_BYTES", 5 * 1024 * 1024)
    audit_max_entries: int = _env_int("EMTRACK_AUDIT_MAX_ENTRIES", 1000)
    audit_failure_policy: AuditFailurePolicy = _env_audit_policy(
        "EMTRACK_AUDIT_FAILURE_POLICY", "best_effort"
    )
    incident_delete_policy: IncidentDeletePolicy = _env_delete_policy(
        "EMTRACK_INCIDENT_DELETE_POLICY", "retain"
    )
    default_admin_pin: str = os.getenv("EMTRACK_DEFAULT_ADMIN_PIN", "E911")


settings = Settings()
