from __future__ import annotations


class EmtrackError(Exception):
    """Base class for errors raised by the incident tracking core."""


class ValidationError(EmtrackError, ValueError):
    """Input rejected before anything reached storage."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidCredentials(EmtrackError):
    """Login failed. Unknown user, wrong PIN and inactive user look the same."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class PermissionDenied(EmtrackError):
    def __init__(self, permission: str, message: str | None = None) -> None:
        super().__init__(message or f"Permission denied: {permission}")
        self.permission = permission


class StorageFailure(EmtrackError):
    """Persisting failed; the operation was aborted with nothing written."""


class QuotaExceeded(StorageFailure):
    def __init__(self, key: str, required: int, quota: int) -> None:
        super().__init__(
            f"Storage quota exceeded while writing '{key}': {required} of {quota} bytes"
        )
        self.key = key
        self.required = required
        self.quota = quota


class NotFound(EmtrackError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} '{entity_id}' not found")
        self.entity_type = entity_type
        self.entity_id = entity_id
