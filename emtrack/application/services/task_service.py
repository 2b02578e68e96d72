from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from emtrack.application.dto.audit_dto import AuditChange
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import new_id, utc_now
from emtrack.application.dto.task_dto import Task, TaskComment, TaskCreateRequest, TaskFilters, TaskUpdateRequest
from emtrack.application.security import require_permission
from emtrack.application.services.record_service import RecordService
from emtrack.domain.constants import (
    DEFAULT_TASK_CATEGORIES,
    TASK_CATEGORIES_KEY,
    TASK_PRIORITY_RANK,
    TASKS_KEY_PREFIX,
    UNKNOWN_USER,
    EntityType,
    TaskStatus,
)
from emtrack.domain.errors import NotFound, ValidationError


def is_overdue(task: Task, now: datetime | None = None) -> bool:
    if task.due_date is None or task.status == TaskStatus.COMPLETED:
        return False
    due = task.due_date if task.due_date.tzinfo else task.due_date.replace(tzinfo=UTC)
    return due < (now or utc_now())


def filter_and_sort(tasks: list[Task], filters: TaskFilters | None = None) -> list[Task]:
    criteria = filters or TaskFilters()
    selected = [
        t
        for t in tasks
        if (criteria.priority is None or t.priority == criteria.priority)
        and (criteria.category is None or t.category == criteria.category)
        and (criteria.status is None or t.status == criteria.status)
        and (criteria.assigned_to is None or t.assigned_to == criteria.assigned_to)
    ]
    if criteria.sort_by == "priority":
        return sorted(selected, key=lambda t: TASK_PRIORITY_RANK.get(t.priority, 0), reverse=True)
    if criteria.sort_by == "dueDate":
        # Tasks without a due date go last.
        return sorted(selected, key=lambda t: (t.due_date is None, t.due_date or datetime.max.replace(tzinfo=UTC)))
    if criteria.sort_by == "status":
        return sorted(selected, key=lambda t: t.status != TaskStatus.PENDING)
    return sorted(selected, key=lambda t: t.created_at, reverse=True)


class TaskService(RecordService[Task]):
    entity_type = EntityType.TASK
    label = "task"
    record_model = Task
    create_model = TaskCreateRequest
    update_model = TaskUpdateRequest
    storage_key_name = TASKS_KEY_PREFIX
    scoped = True
    system_fields = frozenset({"id", "updatedAt", "incidentId", "comments", "completedAt"})

    def toggle(self, task_id: str, ctx: SessionContext | None, incident_id: str) -> Task:
        task = self.get(task_id, incident_id)
        if task is None:
            raise NotFound(self.entity_type, task_id)
        new_status = TaskStatus.PENDING if task.status == TaskStatus.COMPLETED else TaskStatus.COMPLETED
        return self.update(task_id, {"status": new_status}, ctx, incident_id)

    def add_comment(
        self,
        task_id: str,
        content: str,
        ctx: SessionContext | None,
        incident_id: str,
    ) -> TaskComment:
        require_permission(ctx, "update", action="comment_task")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment must not be empty", field="content")
        key = self.storage_key(incident_id)
        with self.session_factory() as session:
            rows = self.collections.load(session, key)
            index = next((i for i, row in enumerate(rows) if row.get("id") == task_id), None)
            if index is None:
                raise NotFound(self.entity_type, task_id)
            comment = TaskComment(
                id=new_id(),
                content=content,
                author=ctx.name if ctx else UNKNOWN_USER,
                timestamp=utc_now(),
            )
            task = self._to_record(rows[index])
            task.comments.append(comment)
            rows[index] = task.to_storage()
            self.collections.save(session, key, rows)
            self.audit.log_create(
                session,
                ctx,
                EntityType.TASK_COMMENT,
                comment.id,
                f"Added comment to task: {content[:50]}",
                {"incidentId": incident_id, "taskId": task.id, "taskName": task.name},
            )
            return comment

    def list_filtered(self, incident_id: str, filters: TaskFilters | None = None) -> list[Task]:
        return filter_and_sort(self.list(incident_id), filters)

    def overdue(self, incident_id: str, now: datetime | None = None) -> list[Task]:
        return [t for t in self.list(incident_id) if is_overdue(t, now)]

    def list_categories(self) -> list[str]:
        with self.session_factory() as session:
            stored = self.collections.store.get(session, TASK_CATEGORIES_KEY)
            if stored is None:
                return list(DEFAULT_TASK_CATEGORIES)
            return [str(c) for c in self.collections.load(session, TASK_CATEGORIES_KEY)]

    def add_category(self, name: str, ctx: SessionContext | None) -> list[str]:
        require_permission(ctx, "create", action="add_task_category")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required", field="category")
        categories = self.list_categories()
        if name in categories:
            return categories
        categories.append(name)
        with self.session_factory() as session:
            self.collections.save(session, TASK_CATEGORIES_KEY, categories)  # type: ignore[arg-type]
        return categories

    def _prepare_create(
        self, session, payload: dict[str, Any], ctx: SessionContext | None, scope: str | None
    ) -> dict[str, Any]:
        payload["comments"] = []
        if payload.get("status") == TaskStatus.COMPLETED:
            payload["completedAt"] = utc_now()
        return payload

    def _derived_updates(self, old: Mapping[str, Any], changes: list[AuditChange]) -> dict[str, Any]:
        status_change = next((c for c in changes if c.field == "status"), None)
        if status_change is None:
            return {}
        if status_change.new_value == TaskStatus.COMPLETED:
            return {"completedAt": utc_now()}
        return {"completedAt": None}

    def _audit_metadata(self, record: Task, scope: str | None) -> dict[str, Any]:
        return {
            "incidentId": record.incident_id,
            "taskName": record.name,
            "priority": record.priority.value,
            "category": record.category,
            "assignedTo": record.assigned_to,
        }

    def _describe_create(self, record: Task) -> str:
        return f"Created {record.priority.value} priority task: {record.name}"
