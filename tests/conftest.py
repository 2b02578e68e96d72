from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Callable, Generator
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

import pytest

# Keep the module-level data dir (logs, exports, default DB) out of the user profile.
os.environ.setdefault("EMTRACK_DATA_DIR", tempfile.mkdtemp(prefix="emtrack-tests-"))

from sqlalchemy import create_engine  # noqa: E402

from emtrack.application.dto.auth_dto import SessionContext  # noqa: E402
from emtrack.config import Settings, settings  # noqa: E402
from emtrack.container import Container, build_container  # noqa: E402
from emtrack.infrastructure.db.models_sqlalchemy import Base  # noqa: E402
from emtrack.infrastructure.db.session import SessionFactory, make_session_scope  # noqa: E402


def make_session_factory(db_path: Path) -> SessionFactory:
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", future=True)
    Base.metadata.create_all(engine)
    return make_session_scope(engine)


def _settings(**overrides) -> Settings:
    base = replace(
        settings,
        storage_quota_bytes=5 * 1024 * 1024,
        audit_max_entries=1000,
        audit_failure_policy="best_effort",
        incident_delete_policy="retain",
        default_admin_pin="E911",
    )
    return replace(base, **overrides)


@pytest.fixture
def tmp_path() -> Generator[Path, None, None]:
    base = Path("pytest_artifacts")
    base.mkdir(parents=True, exist_ok=True)
    path = base / uuid4().hex
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def session_factory(tmp_path: Path) -> SessionFactory:
    return make_session_factory(tmp_path / "emtrack.db")


@pytest.fixture
def make_container(session_factory: SessionFactory) -> Callable[..., Container]:
    """Containers sharing one database; keyword arguments override settings."""

    def _make(**overrides) -> Container:
        built = build_container(session_factory=session_factory, config=_settings(**overrides))
        built.auth_service.initialize()
        return built

    return _make


@pytest.fixture
def container(make_container: Callable[..., Container]) -> Container:
    return make_container()


@pytest.fixture
def admin_ctx(container: Container) -> SessionContext:
    return container.auth_service.login_or_raise("999", "E911")


@pytest.fixture
def contributor_ctx() -> SessionContext:
    return SessionContext(user_id="c-1", login="201", name="Casey Contributor", role="contributor")


@pytest.fixture
def viewer_ctx() -> SessionContext:
    return SessionContext(user_id="v-1", login="301", name="Val Viewer", role="view_only")
