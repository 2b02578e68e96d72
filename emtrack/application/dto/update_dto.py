from __future__ import annotations

from pydantic import Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime
from emtrack.domain.constants import TaskPriority


class IncidentUpdate(StoredRecord):
    incident_id: str
    type: str = "general"
    content: str
    priority: TaskPriority = TaskPriority.NORMAL
    category: str = "General"
    author: str
    timestamp: UtcDatetime


class IncidentUpdateCreateRequest(CamelModel):
    content: str = Field(..., min_length=1)
    type: str = "general"
    priority: TaskPriority = TaskPriority.NORMAL
    category: str = "General"
