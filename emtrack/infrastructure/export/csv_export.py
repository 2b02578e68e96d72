from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from emtrack.application.dto.audit_dto import AuditEntry
from emtrack.application.dto.contact_dto import Contact
from emtrack.application.dto.document_dto import Document
from emtrack.application.dto.ics_dto import IcsAssignment
from emtrack.application.dto.incident_dto import Incident
from emtrack.application.dto.personnel_dto import Personnel
from emtrack.application.dto.report_dto import IncidentReport
from emtrack.application.dto.task_dto import Task
from emtrack.application.dto.update_dto import IncidentUpdate
from emtrack.infrastructure.export.common import format_changes, format_timestamp

TASK_HEADERS = [
    "Task Name",
    "Description",
    "Priority",
    "Category",
    "Status",
    "Assigned To",
    "Due Date",
    "Created Date",
    "Completed Date",
    "Incident ID",
    "Incident Title",
    "Comments Count",
]
CONTACT_HEADERS = ["Name", "Role", "Phone", "Email", "Incident ID", "Incident Title"]
CONTACT_ICS_HEADERS = [
    "Name",
    "Type",
    "Role/ICS Position",
    "Phone",
    "Email",
    "Status",
    "Assigned Date",
    "Incident ID",
    "Incident Title",
]
UPDATE_HEADERS = ["Timestamp", "Priority", "Category", "Author", "Content", "Incident ID", "Incident Title"]
ICS_HEADERS = ["Personnel Name", "ICS Role", "Status", "Notes", "Assigned Date", "Incident ID", "Incident Title"]
DOCUMENT_HEADERS = [
    "Document Name",
    "Notes",
    "File Count",
    "Uploaded By",
    "Upload Date",
    "Incident ID",
    "Incident Title",
]
AUDIT_HEADERS = ["Timestamp", "User", "Action", "Entity Type", "Entity ID", "Description", "Changes"]
PERSONNEL_HEADERS = [
    "Name",
    "Badge",
    "Department",
    "Role",
    "Status",
    "Phone",
    "Radio",
    "Email",
    "Last Activity",
]


def _write(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    # Strings are always quoted, counts are not.
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def _incident_cells(
    incident: Incident | None, incident_id: str = "", titles: Mapping[str, str] | None = None
) -> list[str]:
    if incident is None:
        return [incident_id, (titles or {}).get(incident_id, "")]
    return [incident.id, incident.title]


def task_rows(
    tasks: Iterable[Task],
    incident: Incident | None = None,
    titles: Mapping[str, str] | None = None,
) -> list[list[Any]]:
    return [
        [
            task.name,
            task.description,
            task.priority.value,
            task.category,
            task.status.value,
            task.assigned_to,
            format_timestamp(task.due_date),
            format_timestamp(task.created_at),
            format_timestamp(task.completed_at),
            *_incident_cells(incident, task.incident_id, titles),
            len(task.comments),
        ]
        for task in tasks
    ]


def tasks_csv(
    tasks: Iterable[Task],
    incident: Incident | None = None,
    titles: Mapping[str, str] | None = None,
) -> str:
    """Task listing for one incident, or across incidents when ``incident`` is None."""
    return _write(TASK_HEADERS, task_rows(tasks, incident, titles))


def contacts_csv(contacts: Iterable[Contact], incident: Incident) -> str:
    return _write(
        CONTACT_HEADERS,
        ([c.name, c.role, c.phone, c.email, *_incident_cells(incident)] for c in contacts),
    )


def contacts_and_ics_csv(
    contacts: Iterable[Contact], assignments: Iterable[IcsAssignment], incident: Incident
) -> str:
    rows: list[list[Any]] = [
        [c.name, "Contact", c.role, c.phone, c.email, "N/A", "N/A", *_incident_cells(incident)]
        for c in contacts
    ]
    rows.extend(
        [
            a.personnel_name,
            "ICS Personnel",
            a.ics_role,
            "N/A",
            "N/A",
            a.status.value,
            format_timestamp(a.assigned_at),
            *_incident_cells(incident),
        ]
        for a in assignments
    )
    return _write(CONTACT_ICS_HEADERS, rows)


def updates_csv(updates: Iterable[IncidentUpdate], incident: Incident) -> str:
    return _write(
        UPDATE_HEADERS,
        (
            [
                format_timestamp(u.timestamp),
                u.priority.value,
                u.category or "General",
                u.author,
                u.content,
                *_incident_cells(incident),
            ]
            for u in updates
        ),
    )


def ics_personnel_csv(assignments: Iterable[IcsAssignment], incident: Incident) -> str:
    return _write(
        ICS_HEADERS,
        (
            [
                a.personnel_name,
                a.ics_role,
                a.status.value,
                a.notes,
                format_timestamp(a.assigned_at),
                *_incident_cells(incident),
            ]
            for a in assignments
        ),
    )


def documents_csv(documents: Iterable[Document], incident: Incident) -> str:
    return _write(
        DOCUMENT_HEADERS,
        (
            [
                d.name,
                d.notes,
                len(d.files),
                d.uploaded_by,
                format_timestamp(d.uploaded_at),
                *_incident_cells(incident),
            ]
            for d in documents
        ),
    )


def audit_trail_csv(entries: Iterable[AuditEntry]) -> str:
    return _write(
        AUDIT_HEADERS,
        (
            [
                format_timestamp(e.timestamp),
                e.user_id,
                e.action.value,
                e.entity_type,
                e.entity_id,
                e.description,
                format_changes(e.changes),
            ]
            for e in entries
        ),
    )


def personnel_csv(personnel: Iterable[Personnel]) -> str:
    return _write(
        PERSONNEL_HEADERS,
        (
            [
                p.name,
                p.badge,
                p.department,
                p.role,
                p.status.value,
                p.phone,
                p.radio,
                p.email,
                format_timestamp(p.last_activity),
            ]
            for p in personnel
        ),
    )


def incident_report_csv(report: IncidentReport) -> str:
    """One CSV document with a titled section per collection of the report."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    incident = report.incident

    writer.writerow(["Incident Report"])
    writer.writerow(["Incident ID", "Title", "Status", "Priority", "Location", "Assigned To", "Created"])
    writer.writerow(
        [
            incident.id,
            incident.title,
            incident.status.value,
            incident.priority.value,
            incident.location,
            incident.assigned_to,
            format_timestamp(incident.created_at),
        ]
    )
    writer.writerow([])
    writer.writerow(["Summary"])
    for label, value in report.summary.labelled():
        writer.writerow([label, value])

    sections: list[tuple[str, list[str], list[list[Any]]]] = [
        ("Tasks", TASK_HEADERS, task_rows(report.tasks, incident)),
        (
            "Updates",
            UPDATE_HEADERS[:5],
            [
                [format_timestamp(u.timestamp), u.priority.value, u.category, u.author, u.content]
                for u in report.updates
            ],
        ),
        ("Contacts", CONTACT_HEADERS[:4], [[c.name, c.role, c.phone, c.email] for c in report.contacts]),
        (
            "ICS Personnel",
            ICS_HEADERS[:5],
            [
                [a.personnel_name, a.ics_role, a.status.value, a.notes, format_timestamp(a.assigned_at)]
                for a in report.personnel
            ],
        ),
        (
            "Documents",
            DOCUMENT_HEADERS[:5],
            [
                [d.name, d.notes, len(d.files), d.uploaded_by, format_timestamp(d.uploaded_at)]
                for d in report.documents
            ],
        ),
        (
            "Audit Trail",
            AUDIT_HEADERS,
            [
                [
                    format_timestamp(e.timestamp),
                    e.user_id,
                    e.action.value,
                    e.entity_type,
                    e.entity_id,
                    e.description,
                    format_changes(e.changes),
                ]
                for e in report.audit_trail
            ],
        ),
    ]
    for title, headers, rows in sections:
        writer.writerow([])
        writer.writerow([f"{title} ({len(rows)})"])
        writer.writerow(headers)
        writer.writerows(rows)
    return buffer.getvalue()
