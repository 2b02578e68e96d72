from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.auth_service import AuthService
from emtrack.application.services.contact_service import ContactService
from emtrack.application.services.document_service import DocumentService, ResourceService
from emtrack.application.services.export_service import ExportService
from emtrack.application.services.ics_service import IcsAssignmentService
from emtrack.application.services.incident_service import IncidentService
from emtrack.application.services.personnel_service import PersonnelService, StatusLogService
from emtrack.application.services.reporting_service import ReportingService
from emtrack.application.services.task_service import TaskService
from emtrack.application.services.update_service import UpdateService
from emtrack.application.services.user_admin_service import UserAdminService
from emtrack.config import Settings, settings
from emtrack.infrastructure.db.repositories.audit_repo import AuditLogRepository
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository
from emtrack.infrastructure.db.repositories.user_repo import UserRepository
from emtrack.infrastructure.db.session import session_scope
from emtrack.infrastructure.storage.kv_store import KeyValueStore


@dataclass
class Container:
    collections: JsonCollectionRepository
    user_repo: UserRepository
    audit_repo: AuditLogRepository

    audit: AuditLogger
    auth_service: AuthService
    user_admin_service: UserAdminService
    incident_service: IncidentService
    personnel_service: PersonnelService
    status_log_service: StatusLogService
    task_service: TaskService
    contact_service: ContactService
    ics_service: IcsAssignmentService
    document_service: DocumentService
    resource_service: ResourceService
    update_service: UpdateService
    reporting_service: ReportingService
    export_service: ExportService


def build_container(
    session_factory: Callable = session_scope,
    config: Settings | None = None,
) -> Container:
    config = config or settings
    collections = JsonCollectionRepository(KeyValueStore(quota_bytes=config.storage_quota_bytes))
    user_repo = UserRepository(collections)
    audit_repo = AuditLogRepository(collections, max_entries=config.audit_max_entries)
    audit = AuditLogger(
        audit_repo=audit_repo,
        session_factory=session_factory,
        failure_policy=config.audit_failure_policy,
    )

    auth_service = AuthService(
        user_repo=user_repo,
        audit=audit,
        session_factory=session_factory,
        default_admin_pin=config.default_admin_pin,
    )
    user_admin_service = UserAdminService(
        user_repo=user_repo, audit=audit, session_factory=session_factory, auth=auth_service
    )
    status_log_service = StatusLogService(collections=collections, session_factory=session_factory)
    personnel_service = PersonnelService(
        collections=collections,
        audit=audit,
        session_factory=session_factory,
        status_logs=status_log_service,
    )
    incident_service = IncidentService(
        collections=collections,
        audit=audit,
        session_factory=session_factory,
        delete_policy=config.incident_delete_policy,
    )
    task_service = TaskService(collections=collections, audit=audit, session_factory=session_factory)
    contact_service = ContactService(collections=collections, audit=audit, session_factory=session_factory)
    ics_service = IcsAssignmentService(
        collections=collections,
        audit=audit,
        session_factory=session_factory,
        personnel=personnel_service,
    )
    document_service = DocumentService(collections=collections, audit=audit, session_factory=session_factory)
    resource_service = ResourceService(collections=collections, audit=audit, session_factory=session_factory)
    update_service = UpdateService(collections=collections, audit=audit, session_factory=session_factory)
    incident_service.register_dependents(
        [task_service, contact_service, ics_service, document_service, update_service]
    )

    reporting_service = ReportingService(
        incidents=incident_service,
        personnel=personnel_service,
        tasks=task_service,
        contacts=contact_service,
        ics=ics_service,
        documents=document_service,
        updates=update_service,
        audit=audit,
    )
    export_service = ExportService(reporting_service)

    return Container(
        collections=collections,
        user_repo=user_repo,
        audit_repo=audit_repo,
        audit=audit,
        auth_service=auth_service,
        user_admin_service=user_admin_service,
        incident_service=incident_service,
        personnel_service=personnel_service,
        status_log_service=status_log_service,
        task_service=task_service,
        contact_service=contact_service,
        ics_service=ics_service,
        document_service=document_service,
        resource_service=resource_service,
        update_service=update_service,
        reporting_service=reporting_service,
        export_service=export_service,
    )
