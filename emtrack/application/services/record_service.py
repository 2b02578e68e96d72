from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, ClassVar, Generic, TypeVar

import pydantic
from sqlalchemy.orm import Session

from emtrack.application.dto.audit_dto import AuditChange
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import CamelModel, StoredRecord, new_id, utc_now
from emtrack.application.security import require_permission
from emtrack.application.services.audit_service import AuditLogger
from emtrack.domain.constants import scoped_key
from emtrack.domain.errors import NotFound, StorageFailure, ValidationError
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.session import session_scope

RecordT = TypeVar("RecordT", bound=StoredRecord)
ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def validate_fields(model: type[ModelT], fields: Mapping[str, Any] | pydantic.BaseModel) -> ModelT:
    """Validate caller input, mapping pydantic errors to ValidationError."""
    if isinstance(fields, model):
        return fields
    data = fields.model_dump(exclude_unset=True, by_alias=True) if isinstance(fields, pydantic.BaseModel) else fields
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ()))
        raise ValidationError(f"{field}: {error.get('msg')}", field=field or None) from exc


def diff_fields(
    old: Mapping[str, Any],
    new_values: Mapping[str, Any],
    ignore: Iterable[str] = (),
) -> list[AuditChange]:
    ignored = set(ignore)
    return [
        AuditChange(field=key, old_value=old.get(key), new_value=value)
        for key, value in new_values.items()
        if key not in ignored and old.get(key) != value
    ]


class RecordService(Generic[RecordT]):
    """CRUD over one JSON collection with permission checks and auditing.

    Every mutation runs in a single transaction: the collection rewrite and
    its audit entry either both land or neither does (subject to the audit
    failure policy).
    """

    entity_type: ClassVar[str]
    label: ClassVar[str] = "record"
    record_model: ClassVar[type[StoredRecord]]
    create_model: ClassVar[type[CamelModel]]
    update_model: ClassVar[type[CamelModel]]
    # Storage key, or the key prefix when the collection is scoped per incident.
    storage_key_name: ClassVar[str]
    scoped: ClassVar[bool] = False
    created_field: ClassVar[str | None] = "createdAt"
    touched_field: ClassVar[str | None] = "updatedAt"
    system_fields: ClassVar[frozenset[str]] = frozenset({"id", "createdAt", "updatedAt", "incidentId"})

    def __init__(
        self,
        collections: JsonCollectionRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.collections = collections or JsonCollectionRepository()
        self.session_factory = session_factory
        self.audit = audit or AuditLogger(session_factory=session_factory)
        self._logger = logging.getLogger(type(self).__module__)

    # -- reads ---------------------------------------------------------

    def storage_key(self, scope: str | None = None) -> str:
        if not self.scoped:
            return self.storage_key_name
        if not scope:
            raise ValidationError("Incident id is required", field="incidentId")
        return scoped_key(self.storage_key_name, scope)

    def list(self, scope: str | None = None) -> list[RecordT]:
        with self.session_factory() as session:
            return self._load_records(session, scope)

    def get(self, record_id: str, scope: str | None = None) -> RecordT | None:
        return next((r for r in self.list(scope) if r.id == record_id), None)

    # -- mutations -----------------------------------------------------

    def create(
        self,
        fields: Mapping[str, Any] | pydantic.BaseModel,
        ctx: SessionContext | None,
        scope: str | None = None,
    ) -> RecordT:
        require_permission(ctx, "create", action=f"create_{self.entity_type}")
        request = validate_fields(self.create_model, fields)
        key = self.storage_key(scope)
        with self.session_factory() as session:
            now = utc_now()
            payload: dict[str, Any] = {"id": new_id(), **request.to_storage()}
            if self.scoped:
                payload["incidentId"] = scope
            if self.created_field and not payload.get(self.created_field):
                payload[self.created_field] = now
            if self.touched_field:
                payload[self.touched_field] = now
            payload = self._prepare_create(session, payload, ctx, scope)
            record = self._to_record(payload)

            rows = self.collections.load(session, key)
            rows.append(record.to_storage())
            self.collections.save(session, key, rows)

            self.audit.log_create(
                session,
                ctx,
                self.entity_type,
                record.id,
                self._describe_create(record),
                self._audit_metadata(record, scope),
            )
            self._after_create(session, record, ctx, scope)
            self._logger.info("Created %s %s", self.entity_type, record.id)
            return record

    def update(
        self,
        record_id: str,
        fields: Mapping[str, Any] | pydantic.BaseModel,
        ctx: SessionContext | None,
        scope: str | None = None,
        *,
        notes: str | None = None,
    ) -> RecordT:
        require_permission(ctx, "update", action=f"update_{self.entity_type}")
        request = validate_fields(self.update_model, fields)
        requested = {
            name: value
            for name, value in request.to_storage(exclude_unset=True).items()
            if name not in self.system_fields
        }
        for name, value in requested.items():
            if value is None and name in self._required_fields():
                raise ValidationError(f"{name}: field is required", field=name)
        key = self.storage_key(scope)
        with self.session_factory() as session:
            rows = self.collections.load(session, key)
            index = next((i for i, row in enumerate(rows) if row.get("id") == record_id), None)
            if index is None:
                raise NotFound(self.entity_type, record_id)
            old = rows[index]
            requested = self._prepare_update(session, old, requested, ctx, scope)
            changes = diff_fields(old, requested, self.system_fields)
            if not changes:
                return self._to_record(old)

            merged = {**old, **requested, **self._derived_updates(old, changes)}
            if self.touched_field:
                merged[self.touched_field] = utc_now()
            record = self._to_record(merged)
            rows[index] = record.to_storage()
            self.collections.save(session, key, rows)

            metadata = self._audit_metadata(record, scope)
            status_change = next((c for c in changes if c.field == "status"), None)
            if status_change is not None:
                self.audit.log_status_change(
                    session,
                    ctx,
                    self.entity_type,
                    record.id,
                    status_change.old_value,
                    status_change.new_value,
                    metadata,
                    extra_changes=[c for c in changes if c.field != "status"],
                )
            else:
                self.audit.log_update(
                    session,
                    ctx,
                    self.entity_type,
                    record.id,
                    self._describe_update(record),
                    changes,
                    metadata,
                )
            self._after_update(session, old, record, changes, ctx, scope, notes)
            return record

    def delete(self, record_id: str, ctx: SessionContext | None, scope: str | None = None) -> bool:
        require_permission(ctx, "delete", action=f"delete_{self.entity_type}")
        key = self.storage_key(scope)
        with self.session_factory() as session:
            return self._delete_in_session(session, record_id, ctx, scope, key)

    # -- helpers shared with subclasses --------------------------------

    def _delete_in_session(
        self,
        session: Session,
        record_id: str,
        ctx: SessionContext | None,
        scope: str | None,
        key: str,
    ) -> bool:
        rows = self.collections.load(session, key)
        target = next((row for row in rows if row.get("id") == record_id), None)
        if target is None:
            return False
        self.collections.save(session, key, [row for row in rows if row.get("id") != record_id])
        record = self._to_record(target)
        self.audit.log_delete(
            session,
            ctx,
            self.entity_type,
            record_id,
            self._describe_delete(record),
            self._audit_metadata(record, scope),
        )
        self._after_delete(session, record, ctx, scope)
        self._logger.info("Deleted %s %s", self.entity_type, record_id)
        return True

    def purge_scope(self, session: Session, scope: str, ctx: SessionContext | None) -> int:
        """Drop a whole incident-scoped collection, auditing each removed record."""
        records = self._load_records(session, scope)
        for record in records:
            self.audit.log_delete(
                session,
                ctx,
                self.entity_type,
                record.id,
                self._describe_delete(record),
                {**self._audit_metadata(record, scope), "cascade": True},
            )
        self.collections.remove(session, self.storage_key(scope))
        return len(records)

    def _load_records(self, session: Session, scope: str | None) -> list[RecordT]:
        rows = self.collections.load(session, self.storage_key(scope))
        try:
            return [self.record_model.model_validate(row) for row in rows]  # type: ignore[misc]
        except pydantic.ValidationError as exc:
            raise StorageFailure(f"Stored {self.entity_type} data is malformed") from exc

    def _to_record(self, payload: Mapping[str, Any]) -> RecordT:
        return validate_fields(self.record_model, dict(payload))  # type: ignore[return-value]

    def _required_fields(self) -> set[str]:
        return {
            field.alias or name
            for name, field in self.create_model.model_fields.items()
            if field.is_required()
        }

    # -- hooks -----------------------------------------------------------

    def _prepare_create(
        self, session: Session, payload: dict[str, Any], ctx: SessionContext | None, scope: str | None
    ) -> dict[str, Any]:
        return payload

    def _prepare_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        requested: dict[str, Any],
        ctx: SessionContext | None,
        scope: str | None,
    ) -> dict[str, Any]:
        return requested

    def _derived_updates(self, old: Mapping[str, Any], changes: list[AuditChange]) -> dict[str, Any]:
        return {}

    def _after_create(self, session: Session, record: RecordT, ctx: SessionContext | None, scope: str | None) -> None:
        return None

    def _after_update(
        self,
        session: Session,
        old: Mapping[str, Any],
        record: RecordT,
        changes: list[AuditChange],
        ctx: SessionContext | None,
        scope: str | None,
        notes: str | None,
    ) -> None:
        return None

    def _after_delete(self, session: Session, record: RecordT, ctx: SessionContext | None, scope: str | None) -> None:
        return None

    def _audit_metadata(self, record: RecordT, scope: str | None) -> dict[str, Any]:
        return {"incidentId": scope} if self.scoped else {}

    def _describe_create(self, record: RecordT) -> str:
        return f"Created {self.label}: {self._title(record)}"

    def _describe_update(self, record: RecordT) -> str:
        return f"Updated {self.label}: {self._title(record)}"

    def _describe_delete(self, record: RecordT) -> str:
        return f"Deleted {self.label}: {self._title(record)}"

    def _title(self, record: RecordT) -> str:
        return str(getattr(record, "name", None) or getattr(record, "title", None) or record.id)


def as_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
