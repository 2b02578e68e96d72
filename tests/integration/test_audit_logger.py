from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from emtrack.application.dto.audit_dto import AuditEntry, AuditFilters
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.incident_service import IncidentService
from emtrack.config import settings
from emtrack.container import Container
from emtrack.domain.constants import UNKNOWN_USER, AuditAction
from emtrack.domain.errors import StorageFailure
from emtrack.infrastructure.db.repositories.audit_repo import AuditLogRepository
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository


class _FailingAuditRepo(AuditLogRepository):
    def add_event(self, session, entry: AuditEntry) -> AuditEntry:
        raise StorageFailure("audit storage unavailable")


def _entry(n: int) -> AuditEntry:
    return AuditEntry(
        id=f"e{n}",
        timestamp=datetime(2026, 10, 18, tzinfo=UTC) + timedelta(seconds=n),
        user_id="tester",
        action=AuditAction.CREATE,
        entity_type="incident",
        entity_id=f"i{n}",
        description=f"Entry {n}",
    )


def test_default_cap_is_one_thousand() -> None:
    assert AuditLogRepository().max_entries == settings.audit_max_entries == 1000


def test_cap_keeps_newest_entries(session_factory) -> None:
    repo = AuditLogRepository(JsonCollectionRepository(), max_entries=1000)
    with session_factory() as session:
        for n in range(1005):
            repo.add_event(session, _entry(n))

    logger = AuditLogger(audit_repo=repo, session_factory=session_factory)
    entries = logger.get_logs()
    assert len(entries) == 1000
    assert entries[0].id == "e1004"
    assert entries[-1].id == "e5"


def test_small_cap_via_record(session_factory) -> None:
    repo = AuditLogRepository(JsonCollectionRepository(), max_entries=20)
    logger = AuditLogger(audit_repo=repo, session_factory=session_factory)

    for n in range(25):
        logger.record(None, "UPDATE", "incident", f"i{n}", f"Change {n}")

    entries = logger.get_logs()
    assert len(entries) == 20
    assert [e.entity_id for e in entries[:2]] == ["i24", "i23"]
    assert entries[-1].entity_id == "i5"
    assert all(e.user_id == UNKNOWN_USER for e in entries)


def test_logs_are_newest_first_and_filterable(session_factory) -> None:
    repo = AuditLogRepository(JsonCollectionRepository())
    with session_factory() as session:
        for n in range(6):
            repo.add_event(session, _entry(n))
    logger = AuditLogger(audit_repo=repo, session_factory=session_factory)

    assert [e.id for e in logger.get_logs()] == ["e5", "e4", "e3", "e2", "e1", "e0"]
    assert [e.id for e in logger.get_logs(entity_id="i3")] == ["e3"]
    window = AuditFilters(
        date_from=datetime(2026, 10, 18, 0, 0, 2, tzinfo=UTC),
        date_to=datetime(2026, 10, 18, 0, 0, 4, tzinfo=UTC),
    )
    assert [e.id for e in logger.get_logs(window)] == ["e4", "e3", "e2"]
    assert [e.id for e in logger.recent(2)] == ["e5", "e4"]


def test_naive_filter_bounds_are_taken_as_utc(session_factory) -> None:
    repo = AuditLogRepository(JsonCollectionRepository())
    with session_factory() as session:
        for n in range(3):
            repo.add_event(session, _entry(n))
    logger = AuditLogger(audit_repo=repo, session_factory=session_factory)

    entries = logger.get_logs(date_from=datetime(2026, 10, 18, 0, 0, 1))

    assert [e.id for e in entries] == ["e2", "e1"]


def test_audit_trail_has_no_mutation_api() -> None:
    for name in ("update", "delete", "remove", "clear"):
        assert not hasattr(AuditLogger, name)
        assert not hasattr(AuditLogRepository, name)


def test_best_effort_keeps_primary_write(session_factory, admin_ctx) -> None:
    collections = JsonCollectionRepository()
    audit = AuditLogger(
        audit_repo=_FailingAuditRepo(collections),
        session_factory=session_factory,
        failure_policy="best_effort",
    )
    incidents = IncidentService(collections=collections, audit=audit, session_factory=session_factory)

    incident = incidents.create({"title": "Power outage"}, admin_ctx)

    assert [i.id for i in incidents.list()] == [incident.id]
    assert audit.get_logs() == []


def test_strict_rolls_back_primary_write(session_factory, admin_ctx) -> None:
    collections = JsonCollectionRepository()
    audit = AuditLogger(
        audit_repo=_FailingAuditRepo(collections),
        session_factory=session_factory,
        failure_policy="strict",
    )
    incidents = IncidentService(collections=collections, audit=audit, session_factory=session_factory)

    with pytest.raises(StorageFailure):
        incidents.create({"title": "Power outage"}, admin_ctx)

    assert incidents.list() == []


def test_every_mutation_leaves_one_entry(container: Container, admin_ctx) -> None:
    incident = container.incident_service.create({"title": "Chemical spill"}, admin_ctx)
    container.incident_service.update(incident.id, {"description": "Chlorine"}, admin_ctx)
    container.incident_service.update(incident.id, {"status": "pending"}, admin_ctx)
    container.incident_service.delete(incident.id, admin_ctx)

    actions = [e.action for e in container.audit.get_logs(entity_id=incident.id)]
    assert actions == [
        AuditAction.DELETE,
        AuditAction.STATUS_CHANGE,
        AuditAction.UPDATE,
        AuditAction.CREATE,
    ]
