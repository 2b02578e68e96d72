from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from emtrack.application.services.export_service import write_artifact
from emtrack.domain.errors import NotFound, PermissionDenied, ValidationError
from emtrack.infrastructure.security.sha256 import sha256_file

NOW = datetime(2026, 10, 18, 14, 30, tzinfo=UTC)


@pytest.fixture
def incident(container, admin_ctx):
    service = container
    incident = service.incident_service.create(
        {"title": "Stadium evacuation", "priority": "high", "type": "security", "location": "North gate"}, admin_ctx
    )
    service.task_service.create(
        {"name": "Open gates", "priority": "critical", "dueDate": datetime(2026, 10, 18, 12, 0, tzinfo=UTC)},
        admin_ctx,
        incident.id,
    )
    done = service.task_service.create({"name": "Notify police, \"Unit 4\""}, admin_ctx, incident.id)
    service.task_service.toggle(done.id, admin_ctx, incident.id)
    service.contact_service.create({"name": "Venue manager", "phone": "555-0199"}, admin_ctx, incident.id)
    person = service.personnel_service.create({"name": "Alex Lead", "status": "on-scene"}, admin_ctx)
    service.ics_service.create({"personnelId": person.id, "icsRole": "Incident Commander"}, admin_ctx, incident.id)
    service.update_service.create(incident.id, {"content": "Crowd moving to car park"}, admin_ctx)
    service.document_service.create({"name": "Site map"}, admin_ctx, incident.id)
    return incident


def test_incident_report_summary(container, admin_ctx, incident) -> None:
    report = container.reporting_service.incident_report(incident.id, admin_ctx, now=NOW)

    summary = report.summary
    assert summary.total_tasks == 2
    assert summary.completed_tasks == 1
    assert summary.overdue_tasks == 1
    assert summary.total_updates == 1
    assert summary.total_documents == 1
    assert summary.total_personnel_assigned == 1
    assert summary.total_contacts == 1
    assert summary.audit_entries == len(report.audit_trail) == 1
    assert report.generated_at == NOW
    assert ("Total Tasks", 2) in summary.labelled()


def test_incident_report_unknown_incident(container, admin_ctx) -> None:
    with pytest.raises(NotFound):
        container.reporting_service.incident_report("missing", admin_ctx)


def test_system_summary(container, admin_ctx, incident) -> None:
    container.incident_service.create({"title": "Minor leak", "priority": "low", "status": "resolved"}, admin_ctx)

    summary = container.reporting_service.system_summary(admin_ctx, now=NOW)

    assert summary.total_incidents == 2
    assert summary.incidents_by_status == {"active": 1, "pending": 0, "resolved": 1}
    assert summary.incidents_by_priority == {"high": 1, "medium": 0, "low": 1}
    assert summary.total_personnel == 1
    assert summary.active_personnel == 1
    assert summary.total_tasks == 2
    assert summary.task_completion_rate == pytest.approx(0.5)


def test_reports_require_session(container, incident) -> None:
    with pytest.raises(PermissionDenied):
        container.reporting_service.system_summary(None)


def test_task_csv_export_is_deterministic(container, viewer_ctx, incident) -> None:
    first = container.export_service.export_tasks(incident.id, viewer_ctx, "csv", now=NOW)
    second = container.export_service.export_tasks(incident.id, viewer_ctx, "csv", now=NOW)

    assert first == second
    assert first.filename == f"tasks-{incident.id}-2026-10-18.csv"
    assert first.mime_type == "text/csv"
    lines = first.content.splitlines()
    assert lines[0].startswith('"Task Name","Description","Priority"')
    assert len(lines) == 3
    assert '"Notify police, ""Unit 4"""' in first.content
    assert '"Stadium evacuation"' in first.content


def test_task_export_across_incidents(container, admin_ctx, incident) -> None:
    other = container.incident_service.create({"title": "Second incident"}, admin_ctx)
    container.task_service.create({"name": "Other task"}, admin_ctx, other.id)

    artifact = container.export_service.export_tasks(None, admin_ctx, "csv", now=NOW)

    assert artifact.filename == "tasks-all-2026-10-18.csv"
    assert len(artifact.content.splitlines()) == 4
    assert '"Second incident"' in artifact.content


def test_task_html_and_pdf_exports(container, admin_ctx, incident) -> None:
    html = container.export_service.export_tasks(incident.id, admin_ctx, "html", now=NOW)
    again = container.export_service.export_tasks(incident.id, admin_ctx, "html", now=NOW)
    pdf = container.export_service.export_tasks(incident.id, admin_ctx, "pdf", now=NOW)

    assert html.content == again.content
    assert "Stadium evacuation" in html.content
    assert "Notify police, &#34;Unit 4&#34;" in html.content
    assert html.mime_type == "text/html"
    assert isinstance(pdf.content, bytes)
    assert pdf.content.startswith(b"%PDF")
    assert pdf.filename.endswith(".pdf")


def test_incident_scoped_exports(container, admin_ctx, incident) -> None:
    exports = container.export_service
    contacts = exports.export_contacts(incident.id, admin_ctx, "csv", now=NOW)
    combined = exports.export_contacts_and_ics(incident.id, admin_ctx, "csv", now=NOW)
    ics = exports.export_ics_personnel(incident.id, admin_ctx, "html", now=NOW)
    updates = exports.export_updates(incident.id, admin_ctx, "csv", now=NOW)
    documents = exports.export_documents(incident.id, admin_ctx, "csv", now=NOW)

    assert contacts.filename == f"contacts-{incident.id}-2026-10-18.csv"
    assert '"Venue manager"' in contacts.content
    assert combined.filename.startswith("contacts-ics-")
    assert '"Alex Lead"' in combined.content
    assert "Incident Commander" in ics.content
    assert '"Crowd moving to car park"' in updates.content
    assert '"Site map"' in documents.content


def test_unsupported_format_is_rejected(container, admin_ctx, incident) -> None:
    with pytest.raises(ValidationError):
        container.export_service.export_contacts(incident.id, admin_ctx, "pdf")


def test_export_requires_session(container, incident) -> None:
    with pytest.raises(PermissionDenied):
        container.export_service.export_tasks(incident.id, None)


def test_export_unknown_incident(container, admin_ctx) -> None:
    with pytest.raises(NotFound):
        container.export_service.export_contacts("missing", admin_ctx)


def test_audit_trail_export(container, admin_ctx, incident) -> None:
    scoped = container.export_service.export_audit_trail(incident.id, admin_ctx, "csv", now=NOW)
    system = container.export_service.export_audit_trail(None, admin_ctx, "html", now=NOW)

    assert scoped.filename == f"audit-trail-{incident.id}-2026-10-18.csv"
    assert len(scoped.content.splitlines()) == 2
    assert "Created new incident: Stadium evacuation" in scoped.content
    assert system.filename == "audit-trail-system-2026-10-18.html"
    assert "Assigned Alex Lead to ICS role: Incident Commander" in system.content


def test_incident_report_exports(container, admin_ctx, incident) -> None:
    html = container.export_service.export_incident_report(incident.id, admin_ctx, "html", now=NOW)
    csv_artifact = container.export_service.export_incident_report(incident.id, admin_ctx, "csv", now=NOW)
    summary = container.export_service.export_system_summary(admin_ctx, now=NOW)

    assert html.filename == f"incident-report-{incident.id}-2026-10-18.html"
    assert "Stadium evacuation" in html.content
    assert "2026-10-18 14:30:00" in html.content
    assert "Tasks (2)" in csv_artifact.content
    assert summary.filename == "system-summary-system-2026-10-18.html"


def test_personnel_export(container, admin_ctx, incident) -> None:
    artifact = container.export_service.export_personnel(admin_ctx, "csv", now=NOW)

    assert artifact.filename == "personnel-all-2026-10-18.csv"
    assert '"Alex Lead"' in artifact.content
    assert '"on-scene"' in artifact.content


def test_write_artifact_reports_hash(container, admin_ctx, incident, tmp_path: Path) -> None:
    artifact = container.export_service.export_tasks(incident.id, admin_ctx, "csv", now=NOW)

    result = write_artifact(artifact, tmp_path / "out")

    path = Path(result["path"])
    assert path.name == artifact.filename
    assert path.read_text(encoding="utf-8") == artifact.content
    assert result["sha256"] == sha256_file(path)
