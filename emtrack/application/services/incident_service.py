from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.incident_dto import Incident, IncidentCreateRequest, IncidentUpdateRequest
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.record_service import RecordService
from emtrack.config import IncidentDeletePolicy, settings
from emtrack.domain.constants import INCIDENTS_KEY, EntityType
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.session import session_scope


class IncidentService(RecordService[Incident]):
    entity_type = EntityType.INCIDENT
    label = "incident"
    record_model = Incident
    create_model = IncidentCreateRequest
    update_model = IncidentUpdateRequest
    storage_key_name = INCIDENTS_KEY

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
        delete_policy: IncidentDeletePolicy | None = None,
    ) -> None:
        super().__init__(collections=collections, audit=audit, session_factory=session_factory)
        self.delete_policy: IncidentDeletePolicy = delete_policy or settings.incident_delete_policy
        self._dependents: list[Any] = []

    def register_dependents(self, services: Sequence[Any]) -> None:
        """Services whose records hang off an incident id (tasks, contacts, ...)."""
        self._dependents = list(services)

    def _audit_metadata(self, record: Incident, scope: str | None) -> dict[str, Any]:
        return {"priority": record.priority.value, "status": record.status.value}

    def _describe_create(self, record: Incident) -> str:
        return f"Created new incident: {record.title}"

    def _after_delete(
        self, session: Session, record: Incident, ctx: SessionContext | None, scope: str | None
    ) -> None:
        if self.delete_policy != "cascade":
            self._logger.info("Incident %s deleted; dependent records retained", record.id)
            return
        removed = sum(service.purge_scope(session, record.id, ctx) for service in self._dependents)
        self._logger.info("Incident %s deleted; %s dependent records removed", record.id, removed)
