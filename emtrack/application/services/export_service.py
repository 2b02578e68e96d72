from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from emtrack.application.dto.audit_dto import AuditFilters
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import utc_now
from emtrack.application.dto.incident_dto import Incident
from emtrack.application.security import require_permission
from emtrack.application.services.reporting_service import ReportingService
from emtrack.config import EXPORT_DIR
from emtrack.domain.errors import NotFound, StorageFailure, ValidationError
from emtrack.infrastructure.export import csv_export, html_export, pdf_export
from emtrack.infrastructure.export.common import export_filename
from emtrack.infrastructure.security.sha256 import sha256_file

logger = logging.getLogger(__name__)

ExportFormat = Literal["csv", "html", "pdf"]

MIME_TYPES: dict[str, str] = {
    "csv": "text/csv",
    "html": "text/html",
    "pdf": "application/pdf",
}


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    content: str | bytes
    mime_type: str


def _check_format(fmt: str, allowed: tuple[str, ...]) -> str:
    if fmt not in allowed:
        raise ValidationError(f"Unsupported export format: {fmt}", field="format")
    return fmt


def write_artifact(artifact: ExportArtifact, directory: str | Path | None = None) -> dict[str, str]:
    """Deliver an artifact to disk; returns its path and SHA-256."""
    target_dir = Path(directory) if directory else EXPORT_DIR
    path = target_dir / artifact.filename
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        if isinstance(artifact.content, bytes):
            path.write_bytes(artifact.content)
        else:
            path.write_text(artifact.content, encoding="utf-8", newline="")
    except OSError as exc:
        raise StorageFailure(f"Cannot write export file: {path}") from exc
    digest = sha256_file(path)
    logger.info("Export written: %s (sha256=%s)", path, digest)
    return {"path": str(path), "sha256": digest}


class ExportService:
    """Gathers records for an export and hands them to the formatters."""

    def __init__(self, reporting: ReportingService) -> None:
        self.reporting = reporting

    def export_tasks(
        self,
        incident_id: str | None,
        ctx: SessionContext | None,
        fmt: ExportFormat = "csv",
        now: datetime | None = None,
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_tasks")
        fmt = _check_format(fmt, ("csv", "html", "pdf"))
        generated_at = now or utc_now()
        if incident_id:
            incident: Incident | None = self._incident(incident_id)
            tasks = self.reporting.tasks.list(incident_id)
            titles = {incident_id: incident.title}
        else:
            incident = None
            incidents = self.reporting.incidents.list()
            tasks = [task for item in incidents for task in self.reporting.tasks.list(item.id)]
            titles = {item.id: item.title for item in incidents}

        if fmt == "csv":
            content: str | bytes = csv_export.tasks_csv(tasks, incident, titles)
        elif fmt == "html":
            content = html_export.tasks_html(tasks, incident, generated_at)
        else:
            content = pdf_export.tasks_pdf(tasks, incident, generated_at)
        return self._artifact("tasks", incident_id, generated_at, fmt, content)

    def export_contacts(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_contacts")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        incident = self._incident(incident_id)
        contacts = self.reporting.contacts.list(incident_id)
        content = (
            csv_export.contacts_csv(contacts, incident)
            if fmt == "csv"
            else html_export.contacts_html(contacts, incident, generated_at)
        )
        return self._artifact("contacts", incident_id, generated_at, fmt, content)

    def export_contacts_and_ics(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_contacts_ics")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        incident = self._incident(incident_id)
        contacts = self.reporting.contacts.list(incident_id)
        assignments = self.reporting.ics.list(incident_id)
        content = (
            csv_export.contacts_and_ics_csv(contacts, assignments, incident)
            if fmt == "csv"
            else html_export.contacts_and_ics_html(contacts, assignments, incident, generated_at)
        )
        return self._artifact("contacts-ics", incident_id, generated_at, fmt, content)

    def export_updates(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_updates")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        incident = self._incident(incident_id)
        updates = self.reporting.updates.list(incident_id)
        content = (
            csv_export.updates_csv(updates, incident)
            if fmt == "csv"
            else html_export.updates_html(updates, incident, generated_at)
        )
        return self._artifact("updates", incident_id, generated_at, fmt, content)

    def export_ics_personnel(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_ics_personnel")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        incident = self._incident(incident_id)
        assignments = self.reporting.ics.list(incident_id)
        content = (
            csv_export.ics_personnel_csv(assignments, incident)
            if fmt == "csv"
            else html_export.ics_personnel_html(assignments, incident, generated_at)
        )
        return self._artifact("ics-personnel", incident_id, generated_at, fmt, content)

    def export_documents(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_documents")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        incident = self._incident(incident_id)
        documents = self.reporting.documents.list(incident_id)
        content = (
            csv_export.documents_csv(documents, incident)
            if fmt == "csv"
            else html_export.documents_html(documents, incident, generated_at)
        )
        return self._artifact("documents", incident_id, generated_at, fmt, content)

    def export_audit_trail(
        self,
        incident_id: str | None,
        ctx: SessionContext | None,
        fmt: ExportFormat = "csv",
        now: datetime | None = None,
        filters: AuditFilters | None = None,
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_audit_trail")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        criteria = filters or AuditFilters()
        incident: Incident | None = None
        if incident_id:
            incident = self._incident(incident_id)
            criteria = criteria.model_copy(update={"entity_id": incident_id})
        entries = self.reporting.audit.get_logs(criteria)
        content = (
            csv_export.audit_trail_csv(entries)
            if fmt == "csv"
            else html_export.audit_trail_html(entries, incident, generated_at)
        )
        return self._artifact("audit-trail", incident_id or "system", generated_at, fmt, content)

    def export_personnel(
        self, ctx: SessionContext | None, fmt: ExportFormat = "csv", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_personnel")
        fmt = _check_format(fmt, ("csv", "html"))
        generated_at = now or utc_now()
        personnel = self.reporting.personnel.list()
        content = (
            csv_export.personnel_csv(personnel)
            if fmt == "csv"
            else html_export.personnel_html(personnel, generated_at)
        )
        return self._artifact("personnel", None, generated_at, fmt, content)

    def export_incident_report(
        self, incident_id: str, ctx: SessionContext | None, fmt: ExportFormat = "html", now: datetime | None = None
    ) -> ExportArtifact:
        require_permission(ctx, "export", action="export_incident_report")
        fmt = _check_format(fmt, ("csv", "html"))
        report = self.reporting.incident_report(incident_id, ctx, now)
        content = (
            html_export.incident_report_html(report)
            if fmt == "html"
            else csv_export.incident_report_csv(report)
        )
        return self._artifact("incident-report", incident_id, report.generated_at, fmt, content)

    def export_system_summary(self, ctx: SessionContext | None, now: datetime | None = None) -> ExportArtifact:
        require_permission(ctx, "export", action="export_system_summary")
        summary = self.reporting.system_summary(ctx, now)
        content = html_export.system_summary_html(summary)
        return self._artifact("system-summary", "system", summary.generated_at, "html", content)

    def _incident(self, incident_id: str) -> Incident:
        incident = self.reporting.incidents.get(incident_id)
        if incident is None:
            raise NotFound(self.reporting.incidents.entity_type, incident_id)
        return incident

    def _artifact(
        self, entity: str, scope: str | None, generated_at: datetime, fmt: str, content: str | bytes
    ) -> ExportArtifact:
        artifact = ExportArtifact(
            filename=export_filename(entity, scope, generated_at, fmt),
            content=content,
            mime_type=MIME_TYPES[fmt],
        )
        logger.info("Export prepared: %s", artifact.filename)
        return artifact
