from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from emtrack.config import settings
from emtrack.domain.errors import QuotaExceeded, StorageFailure
from emtrack.infrastructure.db.models_sqlalchemy import KeyValueEntry, utc_now

logger = logging.getLogger(__name__)


def _entry_size(key: str, value: str) -> int:
    # Counted in characters of key plus value.
    return len(key) + len(value)


class KeyValueStore:
    """Flat string-keyed storage living in the caller's SQLAlchemy session."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes if quota_bytes is not None else settings.storage_quota_bytes

    def get(self, session: Session, key: str) -> str | None:
        stmt = select(KeyValueEntry.value).where(KeyValueEntry.key == key)
        return session.execute(stmt).scalar_one_or_none()

    def set(self, session: Session, key: str, value: str) -> None:
        required = self._usage_without(session, key) + _entry_size(key, value)
        if required > self.quota_bytes:
            logger.warning("Quota exceeded for key %s: %s > %s", key, required, self.quota_bytes)
            raise QuotaExceeded(key, required, self.quota_bytes)
        try:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value, updated_at=utc_now()))
            else:
                entry.value = value
                entry.updated_at = utc_now()
            session.flush()
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Failed to write '{key}'") from exc

    def remove(self, session: Session, key: str) -> None:
        session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))

    def keys(self, session: Session, prefix: str | None = None) -> list[str]:
        stmt = select(KeyValueEntry.key)
        if prefix:
            stmt = stmt.where(KeyValueEntry.key.startswith(prefix, autoescape=True))
        return list(session.execute(stmt.order_by(KeyValueEntry.key.asc())).scalars())

    def usage_bytes(self, session: Session) -> int:
        stmt = select(func.coalesce(func.sum(func.length(KeyValueEntry.key) + func.length(KeyValueEntry.value)), 0))
        return int(session.execute(stmt).scalar() or 0)

    def _usage_without(self, session: Session, key: str) -> int:
        stmt = select(
            func.coalesce(func.sum(func.length(KeyValueEntry.key) + func.length(KeyValueEntry.value)), 0)
        ).where(KeyValueEntry.key != key)
        return int(session.execute(stmt).scalar() or 0)
