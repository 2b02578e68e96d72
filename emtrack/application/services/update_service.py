from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import pydantic
from sqlalchemy.orm import Session

from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import new_id, utc_now
from emtrack.application.dto.update_dto import IncidentUpdate, IncidentUpdateCreateRequest
from emtrack.application.security import require_permission
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.record_service import validate_fields
from emtrack.domain.constants import UNKNOWN_USER, UPDATES_KEY, EntityType
from emtrack.domain.errors import StorageFailure, ValidationError
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.session import session_scope


class UpdateService:
    """Append-only situation updates posted against an incident.

    All incidents share the ``updates`` key; entries carry their incidentId.
    """

    entity_type = EntityType.UPDATE

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.collections = collections or JsonCollectionRepository()
        self.session_factory = session_factory
        self.audit = audit or AuditLogger(session_factory=session_factory)

    def list(self, incident_id: str | None = None) -> list[IncidentUpdate]:
        with self.session_factory() as session:
            updates = self._load(session)
        if incident_id:
            updates = [u for u in updates if u.incident_id == incident_id]
        return updates

    def create(
        self,
        incident_id: str,
        fields: Mapping[str, Any] | pydantic.BaseModel,
        ctx: SessionContext | None,
    ) -> IncidentUpdate:
        require_permission(ctx, "create", action="post_update")
        if not incident_id:
            raise ValidationError("Incident id is required", field="incidentId")
        request = validate_fields(IncidentUpdateCreateRequest, fields)
        update = IncidentUpdate.model_validate(
            {
                **request.to_storage(),
                "id": new_id(),
                "incidentId": incident_id,
                "author": ctx.name if ctx else UNKNOWN_USER,
                "timestamp": utc_now(),
            }
        )
        with self.session_factory() as session:
            rows = self.collections.load(session, UPDATES_KEY)
            rows.append(update.to_storage())
            self.collections.save(session, UPDATES_KEY, rows)
            self.audit.log_create(
                session,
                ctx,
                self.entity_type,
                update.id,
                f"Posted {update.priority.value} update: {update.content[:50]}",
                {"incidentId": incident_id, "category": update.category, "priority": update.priority.value},
            )
        return update

    def purge_scope(self, session: Session, scope: str, ctx: SessionContext | None) -> int:
        """Remove one incident's updates when the incident is deleted with cascade."""
        updates = self._load(session)
        removed = [u for u in updates if u.incident_id == scope]
        if not removed:
            return 0
        self.collections.save(
            session,
            UPDATES_KEY,
            [u.to_storage() for u in updates if u.incident_id != scope],
        )
        for update in removed:
            self.audit.log_delete(
                session,
                ctx,
                self.entity_type,
                update.id,
                f"Deleted update: {update.content[:50]}",
                {"incidentId": scope, "cascade": True},
            )
        return len(removed)

    def _load(self, session: Session) -> list[IncidentUpdate]:
        rows = self.collections.load(session, UPDATES_KEY)
        try:
            return [IncidentUpdate.model_validate(row) for row in rows]
        except pydantic.ValidationError as exc:
            raise StorageFailure("Stored update data is malformed") from exc
