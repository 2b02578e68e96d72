from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.document_dto import (
    Document,
    DocumentCreateRequest,
    DocumentUpdateRequest,
    Resource,
    ResourceCreateRequest,
    ResourceUpdateRequest,
)
from emtrack.application.services.record_service import RecordService
from emtrack.domain.constants import (
    DOCUMENT_FILE_MAX_BYTES,
    DOCUMENTS_KEY_PREFIX,
    RESOURCE_FILE_MAX_BYTES,
    RESOURCES_KEY,
    UNKNOWN_USER,
    EntityType,
)
from emtrack.domain.errors import ValidationError


def check_file_sizes(files: list[Mapping[str, Any]] | None, max_bytes: int) -> None:
    for item in files or []:
        if int(item.get("size") or 0) > max_bytes:
            raise ValidationError(
                f"File {item.get('name')!r} exceeds the {max_bytes // (1024 * 1024)} MB limit",
                field="files",
            )


class DocumentService(RecordService[Document]):
    entity_type = EntityType.DOCUMENT
    label = "document"
    record_model = Document
    create_model = DocumentCreateRequest
    update_model = DocumentUpdateRequest
    storage_key_name = DOCUMENTS_KEY_PREFIX
    scoped = True
    created_field = "uploadedAt"
    system_fields = frozenset({"id", "uploadedAt", "uploadedBy", "updatedAt", "incidentId"})
    max_file_bytes = DOCUMENT_FILE_MAX_BYTES

    def _prepare_create(
        self, session: Session, payload: dict[str, Any], ctx: SessionContext | None, scope: str | None
    ) -> dict[str, Any]:
        check_file_sizes(payload.get("files"), self.max_file_bytes)
        payload["uploadedBy"] = ctx.name if ctx else UNKNOWN_USER
        return payload

    def _prepare_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        requested: dict[str, Any],
        ctx: SessionContext | None,
        scope: str | None,
    ) -> dict[str, Any]:
        check_file_sizes(requested.get("files"), self.max_file_bytes)
        return requested

    def _audit_metadata(self, record: Document, scope: str | None) -> dict[str, Any]:
        return {"incidentId": record.incident_id, "documentName": record.name, "fileCount": len(record.files)}

    def _describe_create(self, record: Document) -> str:
        return f"Uploaded document: {record.name} ({len(record.files)} file(s))"


class ResourceService(RecordService[Resource]):
    """System-wide reference material, not tied to an incident."""

    entity_type = EntityType.RESOURCE
    label = "resource"
    record_model = Resource
    create_model = ResourceCreateRequest
    update_model = ResourceUpdateRequest
    storage_key_name = RESOURCES_KEY
    system_fields = frozenset({"id", "createdAt", "createdBy", "updatedAt"})
    max_file_bytes = RESOURCE_FILE_MAX_BYTES

    def _prepare_create(
        self, session: Session, payload: dict[str, Any], ctx: SessionContext | None, scope: str | None
    ) -> dict[str, Any]:
        check_file_sizes(payload.get("files"), self.max_file_bytes)
        payload["createdBy"] = ctx.name if ctx else UNKNOWN_USER
        return payload

    def _prepare_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        requested: dict[str, Any],
        ctx: SessionContext | None,
        scope: str | None,
    ) -> dict[str, Any]:
        check_file_sizes(requested.get("files"), self.max_file_bytes)
        return requested

    def _audit_metadata(self, record: Resource, scope: str | None) -> dict[str, Any]:
        return {"resourceName": record.name, "fileCount": len(record.files)}
