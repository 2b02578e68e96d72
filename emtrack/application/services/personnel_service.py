from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.audit_dto import AuditChange
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import new_id, utc_now
from emtrack.application.dto.personnel_dto import (
    Personnel,
    PersonnelCreateRequest,
    PersonnelUpdateRequest,
    StatusLogEntry,
)
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.record_service import RecordService
from emtrack.domain.constants import PERSONNEL_KEY, STATUS_LOGS_KEY, UNKNOWN_USER, EntityType, PersonnelStatus
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.session import session_scope


class StatusLogService:
    """Append-only history of personnel status transitions."""

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.collections = collections or JsonCollectionRepository()
        self.session_factory = session_factory

    def append(
        self,
        session: Session,
        *,
        personnel_id: str,
        previous_status: str | None,
        new_status: str,
        notes: str,
        updated_by: str,
    ) -> StatusLogEntry:
        entry = StatusLogEntry(
            id=new_id(),
            personnel_id=personnel_id,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            updated_by=updated_by,
            timestamp=utc_now(),
        )
        rows = self.collections.load(session, STATUS_LOGS_KEY)
        rows.append(entry.to_storage())
        self.collections.save(session, STATUS_LOGS_KEY, rows)
        return entry

    def list(self, personnel_id: str | None = None) -> list[StatusLogEntry]:
        with self.session_factory() as session:
            rows = self.collections.load(session, STATUS_LOGS_KEY)
        entries = [StatusLogEntry.model_validate(row) for row in rows]
        if personnel_id:
            entries = [e for e in entries if e.personnel_id == personnel_id]
        return entries


class PersonnelService(RecordService[Personnel]):
    entity_type = EntityType.PERSONNEL
    label = "personnel"
    record_model = Personnel
    create_model = PersonnelCreateRequest
    update_model = PersonnelUpdateRequest
    storage_key_name = PERSONNEL_KEY
    touched_field = "lastActivity"
    system_fields = frozenset({"id", "createdAt", "lastActivity"})

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
        status_logs: StatusLogService | None = None,
    ) -> None:
        super().__init__(collections=collections, audit=audit, session_factory=session_factory)
        self.status_logs = status_logs or StatusLogService(
            collections=self.collections, session_factory=session_factory
        )

    def change_status(
        self,
        personnel_id: str,
        new_status: PersonnelStatus | str,
        ctx: SessionContext | None,
        notes: str | None = None,
    ) -> Personnel:
        return self.update(personnel_id, {"status": new_status}, ctx, notes=notes)

    def by_status(self) -> dict[str, list[Personnel]]:
        grouped: dict[str, list[Personnel]] = {status.value: [] for status in PersonnelStatus}
        for person in self.list():
            grouped.setdefault(person.status.value, []).append(person)
        return grouped

    def _audit_metadata(self, record: Personnel, scope: str | None) -> dict[str, Any]:
        return {"personnelName": record.name, "department": record.department, "role": record.role}

    def _describe_create(self, record: Personnel) -> str:
        return f"Added new personnel: {record.name}"

    def _after_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        record: Personnel,
        changes: list[AuditChange],
        ctx: SessionContext | None,
        scope: str | None,
        notes: str | None,
    ) -> None:
        status_change = next((c for c in changes if c.field == "status"), None)
        if status_change is None:
            return
        self.status_logs.append(
            session,
            personnel_id=record.id,
            previous_status=status_change.old_value,
            new_status=status_change.new_value,
            notes=notes or f"Status changed from {status_change.old_value} to {status_change.new_value}",
            updated_by=ctx.name if ctx else UNKNOWN_USER,
        )
