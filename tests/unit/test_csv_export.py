from __future__ import annotations

import csv
import io
from datetime import UTC, date, datetime, timedelta, timezone

from emtrack.application.dto.audit_dto import AuditChange, AuditEntry
from emtrack.application.dto.incident_dto import Incident
from emtrack.application.dto.task_dto import Task, TaskComment
from emtrack.infrastructure.export import csv_export
from emtrack.infrastructure.export.common import export_filename, format_changes, format_timestamp

CREATED = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)


def _incident() -> Incident:
    return Incident(id="inc1", title="Harbour fire", created_at=CREATED, updated_at=CREATED)


def _task(**fields) -> Task:
    data = {"id": "t1", "incident_id": "inc1", "name": "Boom deployment", "created_at": CREATED}
    data.update(fields)
    return Task(**data)


def test_export_filename() -> None:
    assert export_filename("tasks", "inc1", date(2026, 10, 18), "csv") == "tasks-inc1-2026-10-18.csv"
    assert export_filename("personnel", None, CREATED, ".html") == "personnel-all-2026-10-18.html"


def test_format_timestamp_is_utc() -> None:
    local = datetime(2026, 10, 18, 10, 15, 5, tzinfo=timezone(timedelta(hours=2)))

    assert format_timestamp(local) == "2026-10-18 08:15:05"
    assert format_timestamp(None) == ""
    assert format_timestamp(None, "-") == "-"


def test_format_changes() -> None:
    changes = [
        AuditChange(field="status", old_value="active", new_value="resolved"),
        AuditChange(field="title", old_value="A", new_value="B"),
    ]

    assert format_changes(changes) == "status: active → resolved; title: A → B"


def test_tasks_csv_quotes_every_string() -> None:
    content = csv_export.tasks_csv([_task(description='Line "A", then B')], _incident())

    lines = content.splitlines()
    assert lines[0] == ",".join(f'"{h}"' for h in csv_export.TASK_HEADERS)
    assert lines[1] == (
        '"Boom deployment","Line ""A"", then B","normal","General","pending","","",'
        '"2026-10-18 08:00:00","","inc1","Harbour fire",0'
    )


def test_tasks_csv_parses_back() -> None:
    comment = TaskComment(id="c1", content="ok", author="Dana", timestamp=CREATED)
    task = _task(
        status="completed",
        completed_at=CREATED + timedelta(hours=1),
        due_date=CREATED + timedelta(days=1),
        comments=[comment],
    )

    rows = list(csv.reader(io.StringIO(csv_export.tasks_csv([task], _incident()))))

    record = dict(zip(rows[0], rows[1]))
    assert record["Status"] == "completed"
    assert record["Due Date"] == "2026-10-19 08:00:00"
    assert record["Completed Date"] == "2026-10-18 09:00:00"
    assert record["Comments Count"] == "1"


def test_tasks_csv_without_incident_uses_title_map() -> None:
    content = csv_export.tasks_csv([_task(incident_id="inc9")], None, {"inc9": "Landslide"})

    assert '"inc9","Landslide"' in content


def test_empty_listing_has_header_only() -> None:
    assert csv_export.tasks_csv([], _incident()).count("\n") == 1


def test_audit_trail_csv() -> None:
    entry = AuditEntry(
        id="a1",
        timestamp=CREATED,
        user_id="Super Administrator",
        action="STATUS_CHANGE",
        entity_type="incident",
        entity_id="inc1",
        description="Status changed from active to resolved",
        changes=[AuditChange(field="status", old_value="active", new_value="resolved")],
    )

    rows = list(csv.reader(io.StringIO(csv_export.audit_trail_csv([entry]))))

    assert rows[0] == csv_export.AUDIT_HEADERS
    assert rows[1] == [
        "2026-10-18 08:00:00",
        "Super Administrator",
        "STATUS_CHANGE",
        "incident",
        "inc1",
        "Status changed from active to resolved",
        "status: active → resolved",
    ]
