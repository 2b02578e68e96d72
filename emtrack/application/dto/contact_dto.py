from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime


class Contact(StoredRecord):
    incident_id: str
    name: str
    role: str = ""
    phone: str = ""
    email: str = ""
    created_at: UtcDatetime
    updated_at: UtcDatetime | None = None


class ContactCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    role: str = ""
    phone: str = ""
    email: str = ""


class ContactUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    role: str | None = None
    phone: str | None = None
    email: str | None = None
