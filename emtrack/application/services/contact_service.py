from __future__ import annotations

from typing import Any

from emtrack.application.dto.contact_dto import Contact, ContactCreateRequest, ContactUpdateRequest
from emtrack.application.services.record_service import RecordService
from emtrack.domain.constants import CONTACTS_KEY_PREFIX, EntityType


class ContactService(RecordService[Contact]):
    entity_type = EntityType.CONTACT
    label = "contact"
    record_model = Contact
    create_model = ContactCreateRequest
    update_model = ContactUpdateRequest
    storage_key_name = CONTACTS_KEY_PREFIX
    scoped = True

    def _audit_metadata(self, record: Contact, scope: str | None) -> dict[str, Any]:
        return {"incidentId": record.incident_id, "contactName": record.name, "role": record.role}

    def _describe_create(self, record: Contact) -> str:
        return f"Added contact: {record.name}"
