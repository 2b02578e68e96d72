from __future__ import annotations

from enum import StrEnum


class _Values(StrEnum):
    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class UserRole(_Values):
    ADMIN = "admin"
    CONTRIBUTOR = "contributor"
    VIEW_ONLY = "view_only"


class IncidentStatus(_Values):
    ACTIVE = "active"
    PENDING = "pending"
    RESOLVED = "resolved"


class IncidentPriority(_Values):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PersonnelStatus(_Values):
    ON_DUTY = "on-duty"
    RESPONDING = "responding"
    ON_SCENE = "on-scene"
    OFF_DUTY = "off-duty"
    UNAVAILABLE = "unavailable"


class TaskPriority(_Values):
    LOW = "low"
    NORMAL = "normal"
    URGENT = "urgent"
    CRITICAL = "critical"


class TaskStatus(_Values):
    PENDING = "pending"
    COMPLETED = "completed"


class IcsAssignmentStatus(_Values):
    ASSIGNED = "assigned"
    ACTIVE = "active"
    STANDBY = "standby"
    RELEASED = "released"


class AuditAction(_Values):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"


class EntityType(_Values):
    INCIDENT = "incident"
    PERSONNEL = "personnel"
    TASK = "task"
    TASK_COMMENT = "task-comment"
    CONTACT = "contact"
    ICS_ASSIGNMENT = "ics-assignment"
    DOCUMENT = "document"
    RESOURCE = "resource"
    UPDATE = "update"
    USER = "user"
    USER_PROFILE = "user-profile"
    SYSTEM_CONFIG = "system-config"


INCIDENT_TYPES: tuple[str, ...] = ("fire", "medical", "security", "technical", "general")

PREDEFINED_ICS_ROLES: tuple[str, ...] = (
    "Incident Commander",
    "Operations Section Chief",
    "Planning Section Chief",
    "Logistics Section Chief",
    "Finance/Admin Section Chief",
    "Safety Officer",
    "Public Information Officer",
    "Liaison Officer",
)

DEFAULT_TASK_CATEGORIES: tuple[str, ...] = (
    "General",
    "Operations",
    "Planning",
    "Logistics",
    "Safety",
    "Communications",
    "Medical",
    "Security",
    "Evacuation",
    "Recovery",
)

TASK_PRIORITY_RANK: dict[str, int] = {
    TaskPriority.CRITICAL: 4,
    TaskPriority.URGENT: 3,
    TaskPriority.NORMAL: 2,
    TaskPriority.LOW: 1,
}

UNKNOWN_USER = "Unknown User"

SUPER_ADMIN_ID = "999"

# Storage keys.
USERS_KEY = "users"
CURRENT_USER_KEY = "currentUser"
SYSTEM_CONFIG_KEY = "systemConfig"
INCIDENTS_KEY = "incidents"
PERSONNEL_KEY = "personnel"
UPDATES_KEY = "updates"
STATUS_LOGS_KEY = "statusLogs"
AUDIT_LOGS_KEY = "auditLogs"
RESOURCES_KEY = "systemResources"
TASK_CATEGORIES_KEY = "taskCategories"

TASKS_KEY_PREFIX = "tasks"
CONTACTS_KEY_PREFIX = "contacts"
ICS_KEY_PREFIX = "incident-personnel"
DOCUMENTS_KEY_PREFIX = "incident-documents"


def scoped_key(prefix: str, incident_id: str) -> str:
    return f"{prefix}-{incident_id}"

DOCUMENT_FILE_MAX_BYTES = 1024 * 1024 * 1024
RESOURCE_FILE_MAX_BYTES = 10 * 1024 * 1024
LOGO_MAX_BYTES = 2 * 1024 * 1024
