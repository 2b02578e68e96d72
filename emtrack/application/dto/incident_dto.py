from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime
from emtrack.domain.constants import IncidentPriority, IncidentStatus


class Incident(StoredRecord):
    title: str
    description: str = ""
    status: IncidentStatus = IncidentStatus.ACTIVE
    priority: IncidentPriority = IncidentPriority.MEDIUM
    type: str = "general"
    location: str = ""
    assigned_to: str = ""
    created_at: UtcDatetime
    updated_at: UtcDatetime


class IncidentCreateRequest(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    status: IncidentStatus = IncidentStatus.ACTIVE
    priority: IncidentPriority = IncidentPriority.MEDIUM
    type: str = "general"
    location: str = ""
    assigned_to: str = ""


class IncidentUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: IncidentStatus | None = None
    priority: IncidentPriority | None = None
    type: str | None = None
    location: str | None = None
    assigned_to: str | None = None
