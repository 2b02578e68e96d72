from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from emtrack.application.dto.common import CamelModel, StoredRecord, UtcDatetime
from emtrack.domain.constants import TaskPriority, TaskStatus


class TaskComment(CamelModel):
    id: str
    content: str
    author: str
    timestamp: UtcDatetime


class Task(StoredRecord):
    incident_id: str
    name: str
    description: str = ""
    assigned_to: str = ""
    priority: TaskPriority = TaskPriority.NORMAL
    category: str = "General"
    status: TaskStatus = TaskStatus.PENDING
    created_at: UtcDatetime
    updated_at: UtcDatetime | None = None
    due_date: UtcDatetime | None = None
    completed_at: UtcDatetime | None = None
    comments: list[TaskComment] = Field(default_factory=list)


class TaskCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    assigned_to: str = ""
    priority: TaskPriority = TaskPriority.NORMAL
    category: str = "General"
    status: TaskStatus = TaskStatus.PENDING
    due_date: UtcDatetime | None = None
    # Back-dating is allowed for tasks recorded after the fact.
    created_at: UtcDatetime | None = None


class TaskUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    assigned_to: str | None = None
    priority: TaskPriority | None = None
    category: str | None = None
    status: TaskStatus | None = None
    due_date: UtcDatetime | None = None
    created_at: UtcDatetime | None = None


class TaskFilters(BaseModel):
    priority: TaskPriority | None = None
    category: str | None = None
    status: TaskStatus | None = None
    assigned_to: str | None = None
    sort_by: Literal["created", "priority", "dueDate", "status"] = "created"
