from datetime import datetime

from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.db.models import ClientContact
from app.freight.repos.clients import ClientContactRepository
from app.freight.services.audit import AuditEventPayload, AuditService, audit_snapshot
from app.freight.services.clients import ClientService

CONTACT_AUDIT_FIELDS = ("first_name", "last_name", "contact_type", "email", "is_primary", "is_active")

NON_NULLABLE_FIELDS = frozenset({"first_name", "last_name", "contact_type", "is_primary", "is_active"})


def normalize_primary(contacts, preferred=None) -> None:
    """Keep exactly one primary among active contacts when any is active."""
    ordered = sorted(contacts, key=lambda contact: contact.created_at)
    for contact in ordered:
        if not contact.is_active:
            contact.is_primary = False
    active = [contact for contact in ordered if contact.is_active]
    if preferred is not None and preferred.is_primary:
        for contact in active:
            if contact is not preferred:
                contact.is_primary = False
    primaries = [contact for contact in active if contact.is_primary]
    if not primaries and active:
        active[0].is_primary = True
    for extra in primaries[1:]:
        extra.is_primary = False


class ClientContactService:
    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.clients = ClientService(db, trace_id=trace_id)
        self.repo = ClientContactRepository(db)
        self.audit = AuditService(db)

    def list_contacts(self, client_id, tenant_id):
        client = self._business_client(client_id, tenant_id)
        return self.repo.list_for_client(client.id, tenant_id)

    def add(self, client_id, tenant_id, user, payload):
        client = self._business_client(client_id, tenant_id, for_update=True)
        now = datetime.utcnow()
        values = payload.model_dump()
        if values.get("email"):
            values["email"] = str(values["email"]).lower()
        contact = ClientContact(tenant_id=tenant_id, client_id=client.id, created_at=now, updated_at=now, **values)
        self.repo.add(contact)
        normalize_primary(self.repo.list_for_client(client.id, tenant_id), preferred=contact)
        self._touch(client, user, now)
        self.db.commit()
        self._audit(
            client, str(contact.id), user, "client.contact.add", after=audit_snapshot(contact, CONTACT_AUDIT_FIELDS)
        )
        return client, contact

    def update(self, client_id, contact_id, tenant_id, user, changes: dict):
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        if not changes:
            raise AppError(ErrorCatalog.EMPTY_UPDATE)
        client = self._business_client(client_id, tenant_id, for_update=True)
        contact = self._get_contact(client, contact_id, tenant_id)
        contacts = self.repo.list_for_client(client.id, tenant_id)
        if changes.get("is_active") is False and contact.is_active:
            self._ensure_not_last_active(contact, contacts)
        if changes.get("email"):
            changes["email"] = str(changes["email"]).lower()

        before = audit_snapshot(contact, CONTACT_AUDIT_FIELDS)
        now = datetime.utcnow()
        for key, value in changes.items():
            setattr(contact, key, value)
        contact.updated_at = now
        normalize_primary(contacts, preferred=contact if changes.get("is_primary") else None)
        self._touch(client, user, now)
        self.db.commit()
        self._audit(
            client,
            str(contact.id),
            user,
            "client.contact.update",
            before=before,
            after=audit_snapshot(contact, CONTACT_AUDIT_FIELDS),
        )
        return client, contact

    def remove(self, client_id, contact_id, tenant_id, user, *, deactivate_only: bool = False) -> tuple[str, int]:
        client = self._business_client(client_id, tenant_id, for_update=True)
        contact = self._get_contact(client, contact_id, tenant_id)
        contacts = self.repo.list_for_client(client.id, tenant_id)
        if contact.is_active:
            self._ensure_not_last_active(contact, contacts)

        before = audit_snapshot(contact, CONTACT_AUDIT_FIELDS)
        removed_id = str(contact.id)
        now = datetime.utcnow()
        if deactivate_only:
            action = "deactivated"
            contact.is_active = False
            contact.is_primary = False
            contact.updated_at = now
            remaining = contacts
        else:
            action = "removed"
            remaining = [item for item in contacts if item is not contact]
            self.repo.remove(contact)
        normalize_primary(remaining)
        self._touch(client, user, now)
        self.db.commit()
        self._audit(client, removed_id, user, f"client.contact.{action}", before=before)
        return action, len(remaining)

    def _business_client(self, client_id, tenant_id, *, for_update: bool = False):
        client = self.clients.get(client_id, tenant_id, for_update=for_update)
        if client.client_type != "business":
            raise AppError(
                ErrorCatalog.CONTACTS_REQUIRE_BUSINESS_CLIENT,
                details={"client_id": str(client.id), "client_type": client.client_type},
            )
        return client

    def _get_contact(self, client, contact_id, tenant_id) -> ClientContact:
        contact = self.repo.get(contact_id, client.id, tenant_id)
        if contact is None:
            raise AppError(ErrorCatalog.CONTACT_NOT_FOUND, details={"contact_id": str(contact_id)})
        return contact

    @staticmethod
    def _ensure_not_last_active(contact, contacts) -> None:
        others = [item for item in contacts if item.is_active and item.id != contact.id]
        if not others:
            raise AppError(ErrorCatalog.LAST_ACTIVE_CONTACT, details={"contact_id": str(contact.id)})

    @staticmethod
    def _touch(client, user, now) -> None:
        client.version += 1
        client.updated_by = user.id
        client.updated_at = now

    def _audit(self, client, contact_id: str, user, action: str, *, before=None, after=None) -> None:
        self.audit.record_event(
            AuditEventPayload(
                tenant_id=str(client.tenant_id),
                user_id=str(user.id),
                trace_id=self.trace_id or None,
                actor=user.username,
                action=action,
                entity_type="client_contact",
                entity_id=contact_id,
                before=before,
                after=after,
                metadata={"client_id": str(client.id)},
            )
        )
