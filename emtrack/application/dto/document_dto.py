from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime


class FileAttachment(CamelModel):
    id: str
    name: str
    size: int
    type: str
    data: str
    uploaded_at: UtcDatetime


class Document(StoredRecord):
    incident_id: str
    name: str
    notes: str = ""
    files: list[FileAttachment] = Field(default_factory=list)
    uploaded_by: str
    uploaded_at: UtcDatetime
    updated_at: UtcDatetime


class DocumentCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    notes: str = ""
    files: list[FileAttachment] = Field(default_factory=list)


class DocumentUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    notes: str | None = None
    files: list[FileAttachment] | None = None


class Resource(StoredRecord):
    name: str
    description: str = ""
    files: list[FileAttachment] = Field(default_factory=list)
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ResourceCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    files: list[FileAttachment] = Field(default_factory=list)


class ResourceUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    files: list[FileAttachment] | None = None
