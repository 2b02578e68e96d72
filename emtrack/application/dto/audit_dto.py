from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from emtrack.application.dto.common import CamelModel, UtcDatetime
from emtrack.domain.constants import AuditAction


class AuditChange(CamelModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditEntry(CamelModel):
    id: str
    timestamp: UtcDatetime
    user_id: str
    action: AuditAction
    entity_type: str
    entity_id: str
    description: str
    changes: list[AuditChange] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditFilters(BaseModel):
    entity_id: str | None = None
    entity_type: str | None = None
    action: AuditAction | None = None
    date_from: UtcDatetime | None = None
    date_to: UtcDatetime | None = None
