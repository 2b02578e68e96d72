from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime
from emtrack.domain.constants import PersonnelStatus


class Personnel(StoredRecord):
    name: str
    badge: str = ""
    department: str = ""
    role: str = ""
    status: PersonnelStatus = PersonnelStatus.OFF_DUTY
    phone: str = ""
    radio: str = ""
    email: str = ""
    notes: str = ""
    created_at: UtcDatetime
    last_activity: UtcDatetime


class PersonnelCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    badge: str = ""
    department: str = ""
    role: str = ""
    status: PersonnelStatus = PersonnelStatus.OFF_DUTY
    phone: str = ""
    radio: str = ""
    email: str = ""
    notes: str = ""


class PersonnelUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    badge: str | None = None
    department: str | None = None
    role: str | None = None
    status: PersonnelStatus | None = None
    phone: str | None = None
    radio: str | None = None
    email: str | None = None
    notes: str | None = None


class StatusLogEntry(StoredRecord):
    personnel_id: str
    previous_status: PersonnelStatus | None = None
    new_status: PersonnelStatus
    notes: str = ""
    updated_by: str
    timestamp: UtcDatetime
