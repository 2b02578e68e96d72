from __future__ import annotations

from pydantic import BaseModel, Field

from emtrack.application.dto.audit_dto import AuditEntry
from emtrack.application.dto.common import CamelModel, UtcDatetime
from emtrack.application.dto.contact_dto import Contact
from emtrack.application.dto.document_dto import Document
from emtrack.application.dto.ics_dto import IcsAssignment
from emtrack.application.dto.incident_dto import Incident
from emtrack.application.dto.task_dto import Task
from emtrack.application.dto.update_dto import IncidentUpdate


class IncidentReportSummary(CamelModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    total_updates: int = 0
    total_documents: int = 0
    total_personnel_assigned: int = 0
    total_contacts: int = 0
    audit_entries: int = 0

    def labelled(self) -> list[tuple[str, int]]:
        return [
            ("Total Tasks", self.total_tasks),
            ("Completed Tasks", self.completed_tasks),
            ("Overdue Tasks", self.overdue_tasks),
            ("Total Updates", self.total_updates),
            ("Documents", self.total_documents),
            ("Personnel Assigned", self.total_personnel_assigned),
            ("Contacts", self.total_contacts),
            ("Audit Entries", self.audit_entries),
        ]


class IncidentReport(BaseModel):
    incident: Incident
    tasks: list[Task] = Field(default_factory=list)
    updates: list[IncidentUpdate] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
    personnel: list[IcsAssignment] = Field(default_factory=list)
    documents: list[Document] = Field(default_factory=list)
    audit_trail: list[AuditEntry] = Field(default_factory=list)
    summary: IncidentReportSummary = Field(default_factory=IncidentReportSummary)
    generated_at: UtcDatetime


class SystemSummary(BaseModel):
    total_incidents: int = 0
    incidents_by_status: dict[str, int] = Field(default_factory=dict)
    incidents_by_priority: dict[str, int] = Field(default_factory=dict)
    total_personnel: int = 0
    active_personnel: int = 0
    personnel_by_status: dict[str, int] = Field(default_factory=dict)
    total_updates: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    task_completion_rate: float = 0.0
    generated_at: UtcDatetime
