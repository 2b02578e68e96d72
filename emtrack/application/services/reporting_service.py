from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime

from emtrack.application.dto.audit_dto import AuditFilters
from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.dto.common import utc_now
from emtrack.application.dto.report_dto import IncidentReport, IncidentReportSummary, SystemSummary
from emtrack.application.security import require_permission
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.contact_service import ContactService
from emtrack.application.services.document_service import DocumentService
from emtrack.application.services.ics_service import IcsAssignmentService
from emtrack.application.services.incident_service import IncidentService
from emtrack.application.services.personnel_service import PersonnelService
from emtrack.application.services.task_service import TaskService, is_overdue
from emtrack.application.services.update_service import UpdateService
from emtrack.domain.constants import IncidentPriority, IncidentStatus, PersonnelStatus, TaskStatus
from emtrack.domain.errors import NotFound

logger = logging.getLogger(__name__)

ACTIVE_PERSONNEL_STATUSES = frozenset(
    {PersonnelStatus.ON_DUTY, PersonnelStatus.RESPONDING, PersonnelStatus.ON_SCENE}
)


class ReportingService:
    """Read-only aggregation of the stores into report data."""

    def __init__(
        self,
        incidents: IncidentService,
        personnel: PersonnelService,
        tasks: TaskService,
        contacts: ContactService,
        ics: IcsAssignmentService,
        documents: DocumentService,
        updates: UpdateService,
        audit: AuditLogger,
    ) -> None:
        self.incidents = incidents
        self.personnel = personnel
        self.tasks = tasks
        self.contacts = contacts
        self.ics = ics
        self.documents = documents
        self.updates = updates
        self.audit = audit

    def incident_report(
        self, incident_id: str, ctx: SessionContext | None, now: datetime | None = None
    ) -> IncidentReport:
        require_permission(ctx, "view_reports", action="incident_report")
        incident = self.incidents.get(incident_id)
        if incident is None:
            raise NotFound(self.incidents.entity_type, incident_id)
        generated_at = now or utc_now()

        tasks = self.tasks.list(incident_id)
        updates = self.updates.list(incident_id)
        contacts = self.contacts.list(incident_id)
        assignments = self.ics.list(incident_id)
        documents = self.documents.list(incident_id)
        audit_trail = self.audit.get_logs(AuditFilters(entity_id=incident_id))

        summary = IncidentReportSummary(
            total_tasks=len(tasks),
            completed_tasks=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
            overdue_tasks=sum(1 for t in tasks if is_overdue(t, generated_at)),
            total_updates=len(updates),
            total_documents=len(documents),
            total_personnel_assigned=len(assignments),
            total_contacts=len(contacts),
            audit_entries=len(audit_trail),
        )
        logger.info("Incident report built for %s", incident_id)
        return IncidentReport(
            incident=incident,
            tasks=tasks,
            updates=updates,
            contacts=contacts,
            personnel=assignments,
            documents=documents,
            audit_trail=audit_trail,
            summary=summary,
            generated_at=generated_at,
        )

    def system_summary(self, ctx: SessionContext | None, now: datetime | None = None) -> SystemSummary:
        require_permission(ctx, "view_reports", action="system_summary")
        incidents = self.incidents.list()
        personnel = self.personnel.list()
        tasks = [task for incident in incidents for task in self.tasks.list(incident.id)]
        completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)

        by_status = Counter(i.status.value for i in incidents)
        by_priority = Counter(i.priority.value for i in incidents)
        personnel_by_status = Counter(p.status.value for p in personnel)
        return SystemSummary(
            total_incidents=len(incidents),
            incidents_by_status={s: by_status.get(s, 0) for s in IncidentStatus.values()},
            incidents_by_priority={p: by_priority.get(p, 0) for p in IncidentPriority.values()},
            total_personnel=len(personnel),
            active_personnel=sum(1 for p in personnel if p.status in ACTIVE_PERSONNEL_STATUSES),
            personnel_by_status={s: personnel_by_status.get(s, 0) for s in PersonnelStatus.values()},
            total_updates=len(self.updates.list()),
            total_tasks=len(tasks),
            completed_tasks=completed,
            task_completion_rate=completed / len(tasks) if tasks else 0.0,
            generated_at=now or utc_now(),
        )
