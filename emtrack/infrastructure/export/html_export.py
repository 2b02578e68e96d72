from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from functools import lru_cache
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined

from emtrack.application.dto.audit_dto import AuditEntry
from emtrack.application.dto.contact_dto import Contact
from emtrack.application.dto.document_dto import Document
from emtrack.application.dto.ics_dto import IcsAssignment
from emtrack.application.dto.incident_dto import Incident
from emtrack.application.dto.personnel_dto import Personnel
from emtrack.application.dto.report_dto import IncidentReport, SystemSummary
from emtrack.application.dto.task_dto import Task
from emtrack.application.dto.update_dto import IncidentUpdate
from emtrack.infrastructure.export.common import format_timestamp

SITE_NAME = "Emergency Management System"

BASE_HTML = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{% block title %}{% endblock %}</title>
<style>
  body { font-family: Arial, sans-serif; margin: 20px; line-height: 1.6; }
  h1 { color: #333; border-bottom: 2px solid #333; padding-bottom: 10px; }
  h2 { color: #555; border-bottom: 1px solid #ccc; padding-bottom: 5px; margin-top: 30px; }
  table { border-collapse: collapse; width: 100%; margin-top: 20px; }
  th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  th { background-color: #f5f5f5; font-weight: bold; }
  .priority-critical { color: #dc2626; font-weight: bold; }
  .priority-urgent { color: #ea580c; font-weight: bold; }
  .priority-normal { color: #2563eb; }
  .priority-low { color: #16a34a; }
  .status-completed, .status-active, .action-create { background-color: #dcfce7; }
  .status-pending, .status-standby, .action-status_change { background-color: #fef3c7; }
  .status-assigned, .action-update { background-color: #dbeafe; }
  .action-delete { background-color: #fecaca; }
  .update { border: 1px solid #ddd; margin: 10px 0; padding: 15px; border-radius: 5px; }
  .update-header { font-weight: bold; margin-bottom: 10px; }
  .update.priority-critical { border-left: 4px solid #dc2626; }
  .update.priority-urgent { border-left: 4px solid #ea580c; }
  .update.priority-normal { border-left: 4px solid #2563eb; }
  .update.priority-low { border-left: 4px solid #16a34a; }
  .summary-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin: 20px 0; }
  .summary-card { border: 1px solid #ddd; padding: 15px; border-radius: 5px; background: #f9f9f9; }
  .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #ccc; text-align: center; color: #666; font-size: 12px; }
  @media print { body { margin: 0; } }
</style>
</head>
<body>
{% block body %}{% endblock %}
</body>
</html>
"""

TASK_TABLE_HTML = """<table>
<thead><tr><th>Task Name</th><th>Priority</th><th>Category</th><th>Status</th><th>Assigned To</th><th>Due Date</th><th>Created</th></tr></thead>
<tbody>
{% for task in tasks %}
<tr class="status-{{ task.status.value }}">
<td>{{ task.name }}</td>
<td class="priority-{{ task.priority.value }}">{{ task.priority.value | upper }}</td>
<td>{{ task.category }}</td>
<td>{{ task.status.value | upper }}</td>
<td>{{ task.assigned_to or '-' }}</td>
<td>{{ task.due_date | ts('-') }}</td>
<td>{{ task.created_at | ts }}</td>
</tr>
{% endfor %}
</tbody>
</table>
"""

CONTACT_TABLE_HTML = """<table>
<thead><tr><th>Name</th><th>Role</th><th>Phone</th><th>Email</th></tr></thead>
<tbody>
{% for contact in contacts %}
<tr><td>{{ contact.name }}</td><td>{{ contact.role or '-' }}</td><td>{{ contact.phone or '-' }}</td><td>{{ contact.email or '-' }}</td></tr>
{% endfor %}
</tbody>
</table>
"""

ICS_TABLE_HTML = """<table>
<thead><tr><th>Personnel Name</th><th>ICS Role</th><th>Status</th><th>Notes</th><th>Assigned Date</th></tr></thead>
<tbody>
{% for person in assignments %}
<tr class="status-{{ person.status.value }}">
<td>{{ person.personnel_name }}</td>
<td>{{ person.ics_role }}</td>
<td>{{ person.status.value | upper }}</td>
<td>{{ person.notes or '-' }}</td>
<td>{{ person.assigned_at | ts }}</td>
</tr>
{% endfor %}
</tbody>
</table>
"""

DOCUMENT_TABLE_HTML = """<table>
<thead><tr><th>Document Name</th><th>Notes</th><th>File Count</th><th>Uploaded By</th><th>Upload Date</th></tr></thead>
<tbody>
{% for doc in documents %}
<tr><td>{{ doc.name }}</td><td>{{ doc.notes or '-' }}</td><td>{{ doc.files | length }}</td><td>{{ doc.uploaded_by }}</td><td>{{ doc.uploaded_at | ts }}</td></tr>
{% endfor %}
</tbody>
</table>
"""

AUDIT_TABLE_HTML = """<table>
<thead><tr><th>Timestamp</th><th>User</th><th>Action</th><th>Entity</th><th>Description</th></tr></thead>
<tbody>
{% for log in entries %}
<tr class="action-{{ log.action.value | lower }}">
<td>{{ log.timestamp | ts }}</td><td>{{ log.user_id }}</td><td>{{ log.action.value }}</td><td>{{ log.entity_type }}</td><td>{{ log.description }}</td>
</tr>
{% endfor %}
</tbody>
</table>
"""

UPDATE_LIST_HTML = """{% for update in updates %}
<div class="update priority-{{ update.priority.value }}">
<div class="update-header">{{ update.timestamp | ts }} - {{ update.author }} ({{ update.priority.value | upper }} Priority){% if update.category %} - {{ update.category }}{% endif %}</div>
<div>{{ update.content }}</div>
</div>
{% endfor %}
"""

HEADER_HTML = """<h1>{{ heading }}</h1>
{% if incident %}<p><strong>Incident:</strong> {{ incident.title }}</p>{% else %}<p><strong>Scope:</strong> {{ scope_label }}</p>{% endif %}
<p><strong>Generated:</strong> {{ generated_at | ts }}</p>
"""

TEMPLATES: dict[str, str] = {
    "base.html": BASE_HTML,
    "_header.html": HEADER_HTML,
    "_tasks.html": TASK_TABLE_HTML,
    "_contacts.html": CONTACT_TABLE_HTML,
    "_ics.html": ICS_TABLE_HTML,
    "_documents.html": DOCUMENT_TABLE_HTML,
    "_audit.html": AUDIT_TABLE_HTML,
    "_updates.html": UPDATE_LIST_HTML,
    "listing.html": """{% extends "base.html" %}
{% block title %}{{ heading }} - {{ incident.title if incident else scope_label }}{% endblock %}
{% block body %}
{% include "_header.html" %}
<p><strong>{{ total_label }}:</strong> {{ total }}</p>
{% include partial %}
{% endblock %}
""",
    "contacts_ics.html": """{% extends "base.html" %}
{% block title %}Contacts & ICS Personnel Report - {{ incident.title }}{% endblock %}
{% block body %}
{% include "_header.html" %}
<h2>Key Contacts ({{ contacts | length }})</h2>
{% include "_contacts.html" %}
<h2>ICS Personnel ({{ assignments | length }})</h2>
{% include "_ics.html" %}
{% endblock %}
""",
    "incident_report.html": """{% extends "base.html" %}
{% block title %}Complete Incident Report - {{ report.incident.title }}{% endblock %}
{% block body %}
{% set incident = report.incident %}
<h1>Complete Incident Report</h1>
<div class="summary-grid">
<div class="summary-card">
<h3>Incident Information</h3>
<p><strong>Title:</strong> {{ incident.title }}</p>
<p><strong>ID:</strong> {{ incident.id }}</p>
<p><strong>Status:</strong> {{ incident.status.value | upper }}</p>
<p><strong>Priority:</strong> {{ incident.priority.value | upper }}</p>
<p><strong>Created:</strong> {{ incident.created_at | ts }}</p>
<p><strong>Location:</strong> {{ incident.location or 'Not specified' }}</p>
<p><strong>Assigned To:</strong> {{ incident.assigned_to or 'Unassigned' }}</p>
</div>
<div class="summary-card">
<h3>Summary Statistics</h3>
{% for label, value in report.summary.labelled() %}
<p><strong>{{ label }}:</strong> {{ value }}</p>
{% endfor %}
</div>
</div>
<h2>Description</h2>
<p>{{ incident.description }}</p>
<h2>Tasks ({{ report.tasks | length }})</h2>
{% with tasks = report.tasks %}{% include "_tasks.html" %}{% endwith %}
<h2>Updates &amp; Log ({{ report.updates | length }})</h2>
{% with updates = report.updates %}{% include "_updates.html" %}{% endwith %}
<h2>Contacts ({{ report.contacts | length }})</h2>
{% with contacts = report.contacts %}{% include "_contacts.html" %}{% endwith %}
<h2>ICS Personnel ({{ report.personnel | length }})</h2>
{% with assignments = report.personnel %}{% include "_ics.html" %}{% endwith %}
<h2>Documents ({{ report.documents | length }})</h2>
{% with documents = report.documents %}{% include "_documents.html" %}{% endwith %}
<h2>Audit Trail ({{ report.audit_trail | length }})</h2>
{% with entries = report.audit_trail %}{% include "_audit.html" %}{% endwith %}
<div class="footer">Report generated on {{ report.generated_at | ts }} by {{ site_name }}</div>
{% endblock %}
""",
    "system_summary.html": """{% extends "base.html" %}
{% block title %}System Summary Report{% endblock %}
{% block body %}
<h1>System Summary Report</h1>
<p><strong>Generated:</strong> {{ summary.generated_at | ts }}</p>
<div class="summary-grid">
<div class="summary-card">
<h3>Incidents</h3>
<p><strong>Total Incidents:</strong> {{ summary.total_incidents }}</p>
{% for status, count in summary.incidents_by_status.items() %}<p><strong>{{ status | title }}:</strong> {{ count }}</p>{% endfor %}
</div>
<div class="summary-card">
<h3>Personnel</h3>
<p><strong>Total Personnel:</strong> {{ summary.total_personnel }}</p>
<p><strong>Active Personnel:</strong> {{ summary.active_personnel }}</p>
</div>
<div class="summary-card">
<h3>Tasks</h3>
<p><strong>Total Tasks:</strong> {{ summary.total_tasks }}</p>
<p><strong>Completed Tasks:</strong> {{ summary.completed_tasks }}</p>
<p><strong>Completion Rate:</strong> {{ '%.1f' | format(summary.task_completion_rate * 100) }}%</p>
<p><strong>Total Updates:</strong> {{ summary.total_updates }}</p>
</div>
</div>
<h2>Incidents by Priority</h2>
<table><thead><tr><th>Priority</th><th>Count</th></tr></thead><tbody>
{% for priority, count in summary.incidents_by_priority.items() %}<tr><td>{{ priority | upper }}</td><td>{{ count }}</td></tr>{% endfor %}
</tbody></table>
<h2>Personnel by Status</h2>
<table><thead><tr><th>Status</th><th>Count</th></tr></thead><tbody>
{% for status, count in summary.personnel_by_status.items() %}<tr><td>{{ status | upper }}</td><td>{{ count }}</td></tr>{% endfor %}
</tbody></table>
<div class="footer">Report generated on {{ summary.generated_at | ts }} by {{ site_name }}</div>
{% endblock %}
""",
    "personnel.html": """{% extends "base.html" %}
{% block title %}Personnel Roster{% endblock %}
{% block body %}
{% include "_header.html" %}
<p><strong>Total Personnel:</strong> {{ personnel | length }}</p>
<table>
<thead><tr><th>Name</th><th>Badge</th><th>Department</th><th>Role</th><th>Status</th><th>Phone</th><th>Radio</th><th>Last Activity</th></tr></thead>
<tbody>
{% for p in personnel %}
<tr><td>{{ p.name }}</td><td>{{ p.badge or '-' }}</td><td>{{ p.department or '-' }}</td><td>{{ p.role or '-' }}</td><td>{{ p.status.value | upper }}</td><td>{{ p.phone or '-' }}</td><td>{{ p.radio or '-' }}</td><td>{{ p.last_activity | ts }}</td></tr>
{% endfor %}
</tbody>
</table>
{% endblock %}
""",
}


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    env = Environment(loader=DictLoader(TEMPLATES), autoescape=True, undefined=StrictUndefined)
    env.filters["ts"] = format_timestamp
    return env


def render(template_name: str, **context: Any) -> str:
    context.setdefault("site_name", SITE_NAME)
    return get_environment().get_template(template_name).render(**context)


def _listing(
    heading: str,
    partial: str,
    total_label: str,
    total: int,
    incident: Incident | None,
    generated_at: datetime,
    scope_label: str = "All Incidents",
    **context: Any,
) -> str:
    return render(
        "listing.html",
        heading=heading,
        partial=partial,
        total_label=total_label,
        total=total,
        incident=incident,
        scope_label=scope_label,
        generated_at=generated_at,
        **context,
    )


def tasks_html(tasks: Iterable[Task], incident: Incident | None, generated_at: datetime) -> str:
    items = list(tasks)
    return _listing("Tasks Report", "_tasks.html", "Total Tasks", len(items), incident, generated_at, tasks=items)


def contacts_html(contacts: Iterable[Contact], incident: Incident, generated_at: datetime) -> str:
    items = list(contacts)
    return _listing(
        "Contacts Report", "_contacts.html", "Total Contacts", len(items), incident, generated_at, contacts=items
    )


def contacts_and_ics_html(
    contacts: Iterable[Contact],
    assignments: Iterable[IcsAssignment],
    incident: Incident,
    generated_at: datetime,
) -> str:
    return render(
        "contacts_ics.html",
        heading="Contacts & ICS Personnel Report",
        incident=incident,
        scope_label="",
        contacts=list(contacts),
        assignments=list(assignments),
        generated_at=generated_at,
    )


def updates_html(updates: Iterable[IncidentUpdate], incident: Incident, generated_at: datetime) -> str:
    items = list(updates)
    return _listing(
        "Updates Report", "_updates.html", "Total Updates", len(items), incident, generated_at, updates=items
    )


def ics_personnel_html(assignments: Iterable[IcsAssignment], incident: Incident, generated_at: datetime) -> str:
    items = list(assignments)
    return _listing(
        "ICS Personnel Report", "_ics.html", "Total Personnel", len(items), incident, generated_at, assignments=items
    )


def documents_html(documents: Iterable[Document], incident: Incident, generated_at: datetime) -> str:
    items = list(documents)
    return _listing(
        "Documents Report", "_documents.html", "Total Documents", len(items), incident, generated_at, documents=items
    )


def audit_trail_html(entries: Iterable[AuditEntry], incident: Incident | None, generated_at: datetime) -> str:
    items = list(entries)
    return _listing(
        "Audit Trail Report",
        "_audit.html",
        "Total Entries",
        len(items),
        incident,
        generated_at,
        scope_label="System-wide",
        entries=items,
    )


def personnel_html(personnel: Iterable[Personnel], generated_at: datetime) -> str:
    return render(
        "personnel.html",
        heading="Personnel Roster",
        incident=None,
        scope_label="All Personnel",
        personnel=list(personnel),
        generated_at=generated_at,
    )


def incident_report_html(report: IncidentReport) -> str:
    return render("incident_report.html", report=report)


def system_summary_html(summary: SystemSummary) -> str:
    return render("system_summary.html", summary=summary)
