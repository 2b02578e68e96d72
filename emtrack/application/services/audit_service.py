from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.audit_dto import AuditChange, AuditEntry, AuditFilters
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import new_id, utc_now
from emtrack.config import AuditFailurePolicy, settings
from emtrack.domain.constants import UNKNOWN_USER, AuditAction
from emtrack.domain.errors import StorageFailure
from emtrack.infrastructure.db.repositories.audit_repo import AuditLogRepository
from emtrack.infrastructure.db.session import session_scope

ChangeLike = AuditChange | Mapping[str, Any]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _coerce_changes(changes: Iterable[ChangeLike]) -> list[AuditChange]:
    return [c if isinstance(c, AuditChange) else AuditChange.model_validate(c) for c in changes]


class AuditLogger:
    """Writes audit entries inside the caller's transaction.

    With the ``best_effort`` policy the write runs in a SAVEPOINT and a
    failure is logged and dropped, so the primary mutation still commits.
    With ``strict`` the failure propagates and the whole operation rolls back.
    """

    def __init__(
        self,
        audit_repo: AuditLogRepository | None = None,
        session_factory: Callable = session_scope,
        failure_policy: AuditFailurePolicy | None = None,
    ) -> None:
        self.audit_repo = audit_repo or AuditLogRepository()
        self.session_factory = session_factory
        self.failure_policy: AuditFailurePolicy = failure_policy or settings.audit_failure_policy
        self._logger = logging.getLogger(__name__)

    def log(
        self,
        session: Session,
        ctx: SessionContext | None,
        action: AuditAction | str,
        entity_type: str,
        entity_id: str,
        description: str,
        changes: Iterable[ChangeLike] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        entry = AuditEntry(
            id=new_id(),
            timestamp=utc_now(),
            user_id=ctx.name if ctx else UNKNOWN_USER,
            action=AuditAction(action),
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            changes=_coerce_changes(changes),
            metadata=dict(metadata or {}),
        )
        if self.failure_policy == "strict":
            return self.audit_repo.add_event(session, entry)
        try:
            with session.begin_nested():
                self.audit_repo.add_event(session, entry)
        except Exception:  # noqa: BLE001
            self._logger.exception(
                "Audit write dropped for %s %s %s", entry.action, entity_type, entity_id
            )
            return None
        return entry

    def log_create(
        self,
        session: Session,
        ctx: SessionContext | None,
        entity_type: str,
        entity_id: str,
        description: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        return self.log(session, ctx, AuditAction.CREATE, entity_type, entity_id, description, (), metadata)

    def log_update(
        self,
        session: Session,
        ctx: SessionContext | None,
        entity_type: str,
        entity_id: str,
        description: str,
        changes: Iterable[ChangeLike] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        return self.log(session, ctx, AuditAction.UPDATE, entity_type, entity_id, description, changes, metadata)

    def log_delete(
        self,
        session: Session,
        ctx: SessionContext | None,
        entity_type: str,
        entity_id: str,
        description: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        return self.log(session, ctx, AuditAction.DELETE, entity_type, entity_id, description, (), metadata)

    def log_status_change(
        self,
        session: Session,
        ctx: SessionContext | None,
        entity_type: str,
        entity_id: str,
        old_status: Any,
        new_status: Any,
        metadata: Mapping[str, Any] | None = None,
        extra_changes: Iterable[ChangeLike] = (),
    ) -> AuditEntry | None:
        changes: list[ChangeLike] = [AuditChange(field="status", old_value=old_status, new_value=new_status)]
        changes.extend(extra_changes)
        return self.log(
            session,
            ctx,
            AuditAction.STATUS_CHANGE,
            entity_type,
            entity_id,
            f"Status changed from {old_status} to {new_status}",
            changes,
            metadata,
        )

    def record(
        self,
        ctx: SessionContext | None,
        action: AuditAction | str,
        entity_type: str,
        entity_id: str,
        description: str,
        changes: Iterable[ChangeLike] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        """Standalone entry in its own transaction."""
        try:
            with self.session_factory() as session:
                return self.log(session, ctx, action, entity_type, entity_id, description, changes, metadata)
        except StorageFailure:
            if self.failure_policy == "strict":
                raise
            self._logger.exception("Audit write dropped for %s %s", entity_type, entity_id)
            return None

    def get_logs(self, filters: AuditFilters | None = None, **kwargs: Any) -> list[AuditEntry]:
        criteria = filters or AuditFilters(**kwargs)
        with self.session_factory() as session:
            entries = self.audit_repo.list_events(session)

        if criteria.entity_id:
            entries = [e for e in entries if e.entity_id == criteria.entity_id]
        if criteria.entity_type:
            entries = [e for e in entries if e.entity_type == criteria.entity_type]
        if criteria.action:
            entries = [e for e in entries if e.action == criteria.action]
        if criteria.date_from:
            date_from = _as_utc(criteria.date_from)
            entries = [e for e in entries if _as_utc(e.timestamp) >= date_from]
        if criteria.date_to:
            date_to = _as_utc(criteria.date_to)
            entries = [e for e in entries if _as_utc(e.timestamp) <= date_to]

        # Reversing first keeps the most recently appended entry ahead on equal timestamps.
        return sorted(reversed(entries), key=lambda e: _as_utc(e.timestamp), reverse=True)

    def recent(self, limit: int = 10) -> list[AuditEntry]:
        return self.get_logs()[:limit]
