from __future__ import annotations

from sqlalchemy.orm import Session

from emtrack.application.dto.audit_dto import AuditEntry
from emtrack.config import settings
from emtrack.domain.constants import AUDIT_LOGS_KEY
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository


class AuditLogRepository:
    """Append-only, capped audit trail. There is deliberately no update/delete."""

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        max_entries: int | None = None,
    ) -> None:
        self.collections = collections or JsonCollectionRepository()
        self.max_entries = max_entries or settings.audit_max_entries

    def add_event(self, session: Session, entry: AuditEntry) -> AuditEntry:
        rows = self.collections.load(session, AUDIT_LOGS_KEY)
        rows.append(entry.to_storage())
        if len(rows) > self.max_entries:
            del rows[: len(rows) - self.max_entries]
        self.collections.save(session, AUDIT_LOGS_KEY, rows)
        return entry

    def list_events(self, session: Session) -> list[AuditEntry]:
        """Entries in insertion order, oldest first."""
        return [AuditEntry.model_validate(row) for row in self.collections.load(session, AUDIT_LOGS_KEY)]
