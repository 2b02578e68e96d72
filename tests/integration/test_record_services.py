from __future__ import annotations

from datetime import UTC, datetime

import pytest

from emtrack.container import Container
from emtrack.domain.constants import AuditAction, EntityType
from emtrack.domain.errors import NotFound, PermissionDenied, StorageFailure, ValidationError


def _incident(container: Container, ctx, **fields):
    payload = {"title": "Warehouse fire", "priority": "high", "type": "fire", "location": "Dock 4"}
    payload.update(fields)
    return container.incident_service.create(payload, ctx)


def test_incident_round_trip(container: Container, admin_ctx) -> None:
    created = _incident(container, admin_ctx, description="Smoke visible from road")

    stored = container.incident_service.list()
    assert [i.id for i in stored] == [created.id]
    incident = stored[0]
    assert incident.title == "Warehouse fire"
    assert incident.priority == "high"
    assert incident.status == "active"
    assert incident.description == "Smoke visible from road"
    assert incident.created_at == incident.updated_at
    assert incident.created_at.tzinfo is not None
    assert container.incident_service.get(created.id) == incident


def test_ids_are_unique(container: Container, admin_ctx) -> None:
    ids = {_incident(container, admin_ctx, title=f"Incident {n}").id for n in range(5)}
    assert len(ids) == 5


def test_create_audit_entry(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    entries = container.audit.get_logs(entity_id=incident.id)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == AuditAction.CREATE
    assert entry.entity_type == EntityType.INCIDENT
    assert entry.user_id == admin_ctx.name
    assert entry.description == "Created new incident: Warehouse fire"
    assert entry.metadata == {"priority": "high", "status": "active"}


def test_update_audit_carries_only_changed_fields(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    updated = container.incident_service.update(
        incident.id, {"title": "Warehouse fire (contained)", "location": "Dock 4", "assignedTo": "Engine 7"}, admin_ctx
    )

    assert updated.title == "Warehouse fire (contained)"
    assert updated.updated_at >= incident.updated_at
    entry = container.audit.get_logs(entity_id=incident.id, action=AuditAction.UPDATE)[0]
    changes = {c.field: (c.old_value, c.new_value) for c in entry.changes}
    assert changes == {
        "title": ("Warehouse fire", "Warehouse fire (contained)"),
        "assignedTo": ("", "Engine 7"),
    }


def test_status_change_is_one_entry_with_other_changes(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    container.incident_service.update(incident.id, {"status": "resolved", "priority": "low"}, admin_ctx)

    entries = container.audit.get_logs(entity_id=incident.id)
    assert [e.action for e in entries] == [AuditAction.STATUS_CHANGE, AuditAction.CREATE]
    changes = {c.field: (c.old_value, c.new_value) for c in entries[0].changes}
    assert changes == {"status": ("active", "resolved"), "priority": ("high", "low")}
    assert entries[0].description == "Status changed from active to resolved"


def test_noop_update_writes_nothing(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    same = container.incident_service.update(incident.id, {"title": "Warehouse fire"}, admin_ctx)

    assert same.updated_at == incident.updated_at
    assert len(container.audit.get_logs(entity_id=incident.id)) == 1


def test_update_rejects_clearing_required_field(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    with pytest.raises(ValidationError):
        container.incident_service.update(incident.id, {"title": None}, admin_ctx)


def test_create_rejects_invalid_input(container: Container, admin_ctx) -> None:
    with pytest.raises(ValidationError):
        container.incident_service.create({"title": ""}, admin_ctx)
    with pytest.raises(ValidationError):
        container.incident_service.create({"title": "x", "priority": "apocalyptic"}, admin_ctx)
    assert container.incident_service.list() == []
    assert container.audit.get_logs() == []


def test_update_unknown_record_raises(container: Container, admin_ctx) -> None:
    with pytest.raises(NotFound):
        container.incident_service.update("missing", {"title": "x"}, admin_ctx)


def test_delete_unknown_record_returns_false(container: Container, admin_ctx) -> None:
    assert container.incident_service.delete("missing", admin_ctx) is False
    assert container.audit.get_logs() == []


def test_delete_is_audited(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    assert container.incident_service.delete(incident.id, admin_ctx) is True

    assert container.incident_service.list() == []
    entry = container.audit.get_logs(entity_id=incident.id)[0]
    assert entry.action == AuditAction.DELETE
    assert entry.description == "Deleted incident: Warehouse fire"


def test_view_only_cannot_mutate(container: Container, admin_ctx, viewer_ctx) -> None:
    incident = _incident(container, admin_ctx)
    person = container.personnel_service.create({"name": "Sam Medic"}, admin_ctx)

    with pytest.raises(PermissionDenied):
        container.incident_service.create({"title": "x"}, viewer_ctx)
    with pytest.raises(PermissionDenied):
        container.incident_service.update(incident.id, {"title": "x"}, viewer_ctx)
    with pytest.raises(PermissionDenied):
        container.incident_service.delete(incident.id, viewer_ctx)
    with pytest.raises(PermissionDenied):
        container.personnel_service.change_status(person.id, "on-duty", viewer_ctx)
    with pytest.raises(PermissionDenied):
        container.task_service.create({"name": "x"}, viewer_ctx, incident.id)
    with pytest.raises(PermissionDenied):
        container.contact_service.create({"name": "x"}, viewer_ctx, incident.id)
    with pytest.raises(PermissionDenied):
        container.ics_service.create({"personnelId": person.id, "icsRole": "Safety Officer"}, viewer_ctx, incident.id)
    with pytest.raises(PermissionDenied):
        container.document_service.create({"name": "x"}, viewer_ctx, incident.id)
    with pytest.raises(PermissionDenied):
        container.resource_service.create({"name": "x"}, viewer_ctx)
    with pytest.raises(PermissionDenied):
        container.update_service.create(incident.id, {"content": "x"}, viewer_ctx)

    assert [i.title for i in container.incident_service.list()] == ["Warehouse fire"]
    assert container.personnel_service.get(person.id).status == "off-duty"


def test_contributor_can_create_and_update_but_not_delete(
    container: Container, admin_ctx, contributor_ctx
) -> None:
    incident = container.incident_service.create({"title": "Gas leak"}, contributor_ctx)
    container.incident_service.update(incident.id, {"priority": "high"}, contributor_ctx)

    with pytest.raises(PermissionDenied):
        container.incident_service.delete(incident.id, contributor_ctx)
    assert container.incident_service.delete(incident.id, admin_ctx) is True


def test_anonymous_caller_is_rejected(container: Container) -> None:
    with pytest.raises(PermissionDenied):
        container.incident_service.create({"title": "x"}, None)


def test_personnel_status_change_logs_history(container: Container, admin_ctx) -> None:
    person = container.personnel_service.create(
        {"name": "Sam Medic", "badge": "M-12", "department": "EMS", "role": "Paramedic"}, admin_ctx
    )

    updated = container.personnel_service.change_status(person.id, "responding", admin_ctx, notes="Dispatched")

    assert updated.status == "responding"
    assert updated.last_activity >= person.last_activity
    entries = container.audit.get_logs(entity_id=person.id)
    assert entries[0].action == AuditAction.STATUS_CHANGE
    assert entries[0].metadata["personnelName"] == "Sam Medic"
    history = container.status_log_service.list(person.id)
    assert len(history) == 1
    assert history[0].previous_status == "off-duty"
    assert history[0].new_status == "responding"
    assert history[0].notes == "Dispatched"
    assert history[0].updated_by == admin_ctx.name


def test_personnel_grouped_by_status(container: Container, admin_ctx) -> None:
    container.personnel_service.create({"name": "A", "status": "on-duty"}, admin_ctx)
    container.personnel_service.create({"name": "B", "status": "on-scene"}, admin_ctx)
    container.personnel_service.create({"name": "C"}, admin_ctx)

    grouped = container.personnel_service.by_status()

    assert [p.name for p in grouped["on-duty"]] == ["A"]
    assert [p.name for p in grouped["on-scene"]] == ["B"]
    assert [p.name for p in grouped["off-duty"]] == ["C"]
    assert grouped["unavailable"] == []


def test_contacts_are_scoped_per_incident(container: Container, admin_ctx) -> None:
    first = _incident(container, admin_ctx, title="First")
    second = _incident(container, admin_ctx, title="Second")

    contact = container.contact_service.create(
        {"name": "Pat Utility", "role": "Gas company", "phone": "555-0100"}, admin_ctx, first.id
    )

    assert container.contact_service.list(first.id) == [contact]
    assert container.contact_service.list(second.id) == []
    assert contact.incident_id == first.id
    entry = container.audit.get_logs(entity_id=contact.id)[0]
    assert entry.description == "Added contact: Pat Utility"
    assert entry.metadata["incidentId"] == first.id


def test_scoped_store_requires_incident(container: Container, admin_ctx) -> None:
    with pytest.raises(ValidationError):
        container.contact_service.create({"name": "Pat"}, admin_ctx, None)


def test_ics_assignment_resolves_personnel_name(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    person = container.personnel_service.create({"name": "Riley Chief"}, admin_ctx)

    assignment = container.ics_service.create(
        {"personnelId": person.id, "icsRole": "Incident Commander"}, admin_ctx, incident.id
    )

    assert assignment.personnel_name == "Riley Chief"
    assert assignment.status == "assigned"
    assert container.ics_service.list(incident.id) == [assignment]
    entry = container.audit.get_logs(entity_id=assignment.id)[0]
    assert entry.description == "Assigned Riley Chief to ICS role: Incident Commander"


def test_ics_assignment_requires_existing_personnel(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    with pytest.raises(ValidationError) as exc_info:
        container.ics_service.create({"personnelId": "ghost", "icsRole": "Safety Officer"}, admin_ctx, incident.id)

    assert exc_info.value.field == "personnelId"
    assert container.ics_service.list(incident.id) == []


def test_ics_reassignment_refreshes_name(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    first = container.personnel_service.create({"name": "Riley Chief"}, admin_ctx)
    second = container.personnel_service.create({"name": "Jordan Deputy"}, admin_ctx)
    assignment = container.ics_service.create(
        {"personnelId": first.id, "icsRole": "Incident Commander"}, admin_ctx, incident.id
    )

    updated = container.ics_service.update(assignment.id, {"personnelId": second.id}, admin_ctx, incident.id)

    assert updated.personnel_name == "Jordan Deputy"


def test_ics_role_options_include_custom_roles(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    person = container.personnel_service.create({"name": "Riley Chief"}, admin_ctx)
    container.ics_service.create({"personnelId": person.id, "icsRole": "Drone Unit Leader"}, admin_ctx, incident.id)

    roles = container.ics_service.role_options(container.ics_service.list(incident.id))

    assert roles[0] == "Incident Commander"
    assert roles[-1] == "Drone Unit Leader"


def test_document_upload(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    attachment = {
        "id": "f1",
        "name": "floorplan.pdf",
        "size": 2048,
        "type": "application/pdf",
        "data": "data:application/pdf;base64,JVBERi0=",
        "uploadedAt": datetime(2026, 10, 18, 9, 30, tzinfo=UTC).isoformat(),
    }

    document = container.document_service.create(
        {"name": "Floor plan", "notes": "Level 2", "files": [attachment]}, admin_ctx, incident.id
    )

    assert document.uploaded_by == admin_ctx.name
    assert document.files[0].name == "floorplan.pdf"
    assert container.document_service.list(incident.id) == [document]


def test_oversized_files_are_rejected(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    huge = {
        "id": "f1",
        "name": "video.mp4",
        "size": 2 * 1024 * 1024 * 1024,
        "type": "video/mp4",
        "data": "",
        "uploadedAt": "2026-10-18T09:30:00Z",
    }

    with pytest.raises(ValidationError):
        container.document_service.create({"name": "Footage", "files": [huge]}, admin_ctx, incident.id)
    with pytest.raises(ValidationError):
        container.resource_service.create(
            {"name": "Manual", "files": [{**huge, "size": 11 * 1024 * 1024}]}, admin_ctx
        )
    assert container.document_service.list(incident.id) == []
    assert container.resource_service.list() == []


def test_resource_round_trip(container: Container, admin_ctx) -> None:
    resource = container.resource_service.create(
        {"name": "Evacuation map", "description": "County-wide routes"}, admin_ctx
    )

    assert resource.created_by == admin_ctx.name
    assert container.resource_service.list() == [resource]
    assert container.audit.get_logs(entity_id=resource.id)[0].entity_type == EntityType.RESOURCE


def test_updates_are_append_only_and_filtered(container: Container, admin_ctx) -> None:
    first = _incident(container, admin_ctx, title="First")
    second = _incident(container, admin_ctx, title="Second")

    posted = container.update_service.create(
        first.id, {"content": "Roof collapse on east side", "priority": "urgent"}, admin_ctx
    )
    container.update_service.create(second.id, {"content": "All clear"}, admin_ctx)

    assert container.update_service.list(first.id) == [posted]
    assert len(container.update_service.list()) == 2
    assert posted.author == admin_ctx.name
    entry = container.audit.get_logs(entity_id=posted.id)[0]
    assert entry.entity_type == EntityType.UPDATE
    assert entry.action == AuditAction.CREATE
    assert not hasattr(container.update_service, "delete")


def test_update_requires_content(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    with pytest.raises(ValidationError):
        container.update_service.create(incident.id, {"content": ""}, admin_ctx)


def test_malformed_stored_data_is_reported(container: Container, admin_ctx, session_factory) -> None:
    with session_factory() as session:
        container.collections.store.set(session, "incidents", "{not json")

    with pytest.raises(StorageFailure):
        container.incident_service.list()


def test_every_store_round_trips_and_deletes(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    person = container.personnel_service.create({"name": "Quinn Driver"}, admin_ctx)
    cases = [
        (container.task_service, {"name": "Stage ambulances", "priority": "urgent"}),
        (container.contact_service, {"name": "Fire marshal", "phone": "555-0111"}),
        (container.ics_service, {"personnelId": person.id, "icsRole": "Safety Officer", "notes": "North"}),
        (container.document_service, {"name": "Permit", "notes": "Scan"}),
    ]
    for service, fields in cases:
        record = service.create(fields, admin_ctx, incident.id)
        stored = service.get(record.id, incident.id)
        assert stored is not None
        assert stored == record
        for key, value in fields.items():
            assert stored.to_storage()[key] == value

        assert service.delete(record.id, admin_ctx, incident.id) is True
        assert record.id not in {r.id for r in service.list(incident.id)}

    for service, fields in (
        (container.personnel_service, {"name": "Robin Medic", "department": "EMS"}),
        (container.resource_service, {"name": "Radio plan", "description": "Channels"}),
    ):
        record = service.create(fields, admin_ctx)
        assert service.get(record.id) == record
        assert service.delete(record.id, admin_ctx) is True
        assert service.get(record.id) is None


def test_audit_and_status_history_entries_never_change(container: Container, admin_ctx) -> None:
    person = container.personnel_service.create({"name": "Sam Medic"}, admin_ctx)
    container.personnel_service.change_status(person.id, "on-duty", admin_ctx)
    first_audit = container.audit.get_logs(entity_id=person.id)[-1]
    first_status = container.status_log_service.list(person.id)[0]

    container.personnel_service.update(person.id, {"name": "Sam Medic II"}, admin_ctx)
    container.personnel_service.change_status(person.id, "off-duty", admin_ctx)
    container.personnel_service.delete(person.id, admin_ctx)

    audit_by_id = {e.id: e for e in container.audit.get_logs()}
    assert audit_by_id[first_audit.id] == first_audit
    history = container.status_log_service.list(person.id)
    assert history[0] == first_status
    assert len(history) == 2


def test_update_cannot_rewrite_identity_or_creation_time(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)
    task = container.task_service.create({"name": "Close road"}, admin_ctx, incident.id)

    renamed = container.incident_service.update(
        incident.id,
        {"id": "hijacked", "createdAt": "2000-01-01T00:00:00Z", "title": "Warehouse fire 2"},
        admin_ctx,
    )
    moved = container.task_service.update(
        task.id, {"incidentId": "other-incident", "name": "Close both roads"}, admin_ctx, incident.id
    )

    assert renamed.id == incident.id
    assert renamed.created_at == incident.created_at
    assert [i.id for i in container.incident_service.list()] == [incident.id]
    assert container.incident_service.get(incident.id).title == "Warehouse fire 2"
    assert moved.incident_id == incident.id
    assert container.task_service.get(task.id, incident.id).name == "Close both roads"

    entry = container.audit.get_logs(entity_id=incident.id, action=AuditAction.UPDATE)[0]
    assert [c.field for c in entry.changes] == ["title"]
    task_entry = container.audit.get_logs(entity_id=task.id, action=AuditAction.UPDATE)[0]
    assert [c.field for c in task_entry.changes] == ["name"]


def test_update_with_only_system_fields_is_a_noop(container: Container, admin_ctx) -> None:
    incident = _incident(container, admin_ctx)

    same = container.incident_service.update(incident.id, {"id": "hijacked"}, admin_ctx)

    assert same == incident
    assert len(container.audit.get_logs(entity_id=incident.id)) == 1
