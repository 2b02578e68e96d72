from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.ics_dto import IcsAssignment, IcsAssignmentCreateRequest, IcsAssignmentUpdateRequest
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.personnel_service import PersonnelService
from emtrack.application.services.record_service import RecordService
from emtrack.domain.constants import ICS_KEY_PREFIX, PREDEFINED_ICS_ROLES, EntityType
from emtrack.domain.errors import ValidationError
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.session import session_scope


class IcsAssignmentService(RecordService[IcsAssignment]):
    """Personnel assigned to Incident Command System roles for one incident.

    ``personnelName`` is denormalised from the personnel roster at assignment
    time so exports stay readable after the person is removed.
    """

    entity_type = EntityType.ICS_ASSIGNMENT
    label = "ICS assignment"
    record_model = IcsAssignment
    create_model = IcsAssignmentCreateRequest
    update_model = IcsAssignmentUpdateRequest
    storage_key_name = ICS_KEY_PREFIX
    scoped = True
    created_field = "assignedAt"
    system_fields = frozenset({"id", "assignedAt", "updatedAt", "incidentId", "personnelName"})

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
        personnel: PersonnelService | None = None,
    ) -> None:
        super().__init__(collections=collections, audit=audit, session_factory=session_factory)
        self.personnel = personnel or PersonnelService(
            collections=self.collections, audit=self.audit, session_factory=session_factory
        )

    @staticmethod
    def role_options(assignments: list[IcsAssignment] | None = None) -> list[str]:
        """Predefined ICS roles followed by any custom roles already in use."""
        roles = list(PREDEFINED_ICS_ROLES)
        for assignment in assignments or []:
            if assignment.ics_role not in roles:
                roles.append(assignment.ics_role)
        return roles

    def _resolve_name(self, session: Session, personnel_id: str) -> str:
        person = next((p for p in self.personnel._load_records(session, None) if p.id == personnel_id), None)
        if person is None:
            raise ValidationError("Selected personnel does not exist", field="personnelId")
        return person.name

    def _prepare_create(
        self, session: Session, payload: dict[str, Any], ctx: SessionContext | None, scope: str | None
    ) -> dict[str, Any]:
        payload["personnelName"] = self._resolve_name(session, payload["personnelId"])
        return payload

    def _prepare_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        requested: dict[str, Any],
        ctx: SessionContext | None,
        scope: str | None,
    ) -> dict[str, Any]:
        if "personnelId" in requested and requested["personnelId"] != old.get("personnelId"):
            requested["personnelName"] = self._resolve_name(session, requested["personnelId"])
        return requested

    def _audit_metadata(self, record: IcsAssignment, scope: str | None) -> dict[str, Any]:
        return {
            "incidentId": record.incident_id,
            "personnelId": record.personnel_id,
            "personnelName": record.personnel_name,
            "icsRole": record.ics_role,
        }

    def _title(self, record: IcsAssignment) -> str:
        return f"{record.personnel_name} as {record.ics_role}"

    def _describe_create(self, record: IcsAssignment) -> str:
        return f"Assigned {record.personnel_name} to ICS role: {record.ics_role}"
