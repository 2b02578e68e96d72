from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime
from emtrack.domain.constants import IcsAssignmentStatus


class IcsAssignment(StoredRecord):
    incident_id: str
    personnel_id: str
    personnel_name: str
    ics_role: str
    status: IcsAssignmentStatus = IcsAssignmentStatus.ASSIGNED
    notes: str = ""
    assigned_at: UtcDatetime
    updated_at: UtcDatetime


class IcsAssignmentCreateRequest(CamelModel):
    personnel_id: str = Field(..., min_length=1)
    ics_role: str = Field(..., min_length=1)
    status: IcsAssignmentStatus = IcsAssignmentStatus.ASSIGNED
    notes: str = ""


class IcsAssignmentUpdateRequest(CamelModel):
    personnel_id: str | None = Field(default=None, min_length=1)
    ics_role: str | None = Field(default=None, min_length=1)
    status: IcsAssignmentStatus | None = None
    notes: str | None = None
