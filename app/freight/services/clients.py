import re
from datetime import datetime, timedelta

from email_validator import EmailNotValidError, validate_email

from app.freight.core.config import settings
from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.db.models import Client
from app.freight.repos.clients import ClientRepository
from app.freight.repos.folders import FolderRepository
from app.freight.services.audit import AuditEventPayload, AuditService, audit_snapshot

CLIENT_AUDIT_FIELDS = (
    "client_type",
    "company_name",
    "first_name",
    "last_name",
    "email",
    "siret",
    "status",
    "version",
)

NON_NULLABLE_FIELDS = frozenset({"client_type", "email", "country", "status", "tags"})
CLOSED_FOLDER_STATUSES = ("completed", "cancelled", "archived")
STATISTICS_WINDOW_DAYS = 30

SIRET_PATTERN = re.compile(r"^\d{14}$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)\.]{7,20}$")
FR_POSTAL_CODE_PATTERN = re.compile(r"^\d{5}$")
VAT_PATTERN = re.compile(r"^[A-Z]{2}[0-9A-Z]{2,13}$")
CLIENT_TYPES = ("individual", "business")
CLIENT_STATUSES = ("active", "inactive", "suspended", "archived")


def parse_if_match(value: str | None) -> int | None:
    """Read a client version from an If-Match header (`3`, `"3"` or `W/"3"`)."""
    if value is None:
        return None
    raw = value.strip()
    if raw.startswith("W/"):
        raw = raw[2:]
    raw = raw.strip('"')
    try:
        return int(raw)
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"header": "If-Match", "value": value}) from exc


class ClientService:
    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.repo = ClientRepository(db)
        self.folders = FolderRepository(db)
        self.audit = AuditService(db)

    def get(self, client_id, tenant_id, *, for_update: bool = False) -> Client:
        client = self.repo.get_by_id(client_id, tenant_id, for_update=for_update)
        if client is None:
            raise AppError(ErrorCatalog.CLIENT_NOT_FOUND, details={"client_id": str(client_id)})
        return client

    def list_clients(self, tenant_id, *, page: int, limit: int, **filters):
        limit = max(1, min(limit, settings.CLIENTS_MAX_PAGE_SIZE))
        page = max(1, page)
        rows, total = self.repo.list_by_tenant(tenant_id, limit=limit, offset=(page - 1) * limit, **filters)
        return rows, total, page, limit

    def create(self, tenant_id, user, payload) -> Client:
        email = str(payload.email).lower()
        self._ensure_unique(tenant_id, email=email, siret=payload.siret)
        now = datetime.utcnow()
        client = Client(
            tenant_id=tenant_id,
            **payload.model_dump(exclude={"email"}),
            email=email,
            version=1,
            created_by=user.id,
            updated_by=user.id,
            created_at=now,
            updated_at=now,
        )
        self.repo.add(client)
        self.db.commit()
        self._audit(client, user, "client.create", after=audit_snapshot(client, CLIENT_AUDIT_FIELDS))
        return client

    def update(self, client_id, tenant_id, user, changes: dict, *, expected_version: int | None = None) -> Client:
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        if not changes:
            raise AppError(ErrorCatalog.EMPTY_UPDATE)
        client = self.get(client_id, tenant_id, for_update=True)
        self._check_version(client, expected_version)
        if "email" in changes:
            changes["email"] = str(changes["email"]).lower()
        self._ensure_unique(
            tenant_id,
            email=changes.get("email"),
            siret=changes.get("siret"),
            exclude_id=client.id,
        )
        merged_type = changes.get("client_type", client.client_type)
        if merged_type == "business" and not changes.get("company_name", client.company_name):
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"field": "company_name", "message": "required"})

        before = audit_snapshot(client, CLIENT_AUDIT_FIELDS)
        for key, value in changes.items():
            setattr(client, key, value)
        client.version += 1
        client.updated_by = user.id
        client.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit(client, user, "client.update", before=before, after=audit_snapshot(client, CLIENT_AUDIT_FIELDS))
        return client

    def delete(self, client_id, tenant_id, user, *, expected_version: int | None = None) -> Client:
        client = self.get(client_id, tenant_id, for_update=True)
        self._check_version(client, expected_version)
        before = audit_snapshot(client, CLIENT_AUDIT_FIELDS)
        now = datetime.utcnow()
        client.deleted_at = now
        client.status = "archived"
        client.version += 1
        client.updated_by = user.id
        client.updated_at = now
        self.db.commit()
        self._audit(client, user, "client.delete", before=before, after={"deleted_at": now.isoformat()})
        return client

    def stats(self, tenant_id) -> dict:
        by_status = self.repo.count_by(tenant_id, "status")
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_type": self.repo.count_by(tenant_id, "client_type"),
        }

    def statistics(self, client_id, tenant_id) -> dict:
        client = self.get(client_id, tenant_id)
        folders = self.folders.list_for_client(tenant_id, client.id)
        now = datetime.utcnow()
        period_start = now - timedelta(days=STATISTICS_WINDOW_DAYS)
        by_status: dict[str, int] = {}
        by_transport: dict[str, int] = {}
        for folder in folders:
            by_status[folder.status] = by_status.get(folder.status, 0) + 1
            by_transport[folder.transport_type] = by_transport.get(folder.transport_type, 0) + 1
        return {
            "client_id": client.id,
            "total_folders": len(folders),
            "active_folders": sum(1 for folder in folders if folder.status not in CLOSED_FOLDER_STATUSES),
            "folders_by_status": by_status,
            "folders_by_transport": by_transport,
            "recent_folders": sum(1 for folder in folders if folder.folder_date >= period_start.date()),
            "last_folder_date": folders[0].folder_date if folders else None,
            "period_start": period_start,
            "period_end": now,
            "calculated_at": now,
        }

    def validate(self, tenant_id, operation_type: str, data: dict, options, *, client_id=None) -> dict:
        """Dry-run the create/update checks without writing anything."""
        existing = self.get(client_id, tenant_id) if operation_type == "update" else None
        errors: list[dict] = []
        warnings: list[dict] = []

        def issue(target, field, message, code):
            target.append({"field": field, "message": message, "code": code})

        def merged(field):
            if field in data:
                return data[field]
            return getattr(existing, field, None) if existing is not None else None

        if operation_type == "create" and not data.get("email"):
            issue(errors, "email", "email is required", "REQUIRED_FIELD")

        email = data.get("email")
        siret = data.get("siret")
        if options.check_formats:
            if email:
                try:
                    email = validate_email(str(email), check_deliverability=False).normalized.lower()
                except EmailNotValidError as exc:
                    issue(errors, "email", str(exc), "INVALID_FORMAT")
                    email = None
            if siret and not SIRET_PATTERN.match(str(siret)):
                issue(errors, "siret", "siret must be 14 digits", "INVALID_FORMAT")
            if data.get("client_type") and data["client_type"] not in CLIENT_TYPES:
                issue(errors, "client_type", f"client_type must be one of {', '.join(CLIENT_TYPES)}", "INVALID_FORMAT")
            if data.get("status") and data["status"] not in CLIENT_STATUSES:
                issue(errors, "status", f"status must be one of {', '.join(CLIENT_STATUSES)}", "INVALID_FORMAT")
            if data.get("phone") and not PHONE_PATTERN.match(str(data["phone"])):
                issue(warnings, "phone", "phone number format looks unusual", "PHONE_FORMAT_WARNING")
            country = merged("country") or "FR"
            postal_code = data.get("postal_code")
            if postal_code and country == "FR" and not FR_POSTAL_CODE_PATTERN.match(str(postal_code)):
                issue(errors, "postal_code", "French postal codes have 5 digits", "POSTAL_CODE_FORMAT")
            if data.get("vat_number") and not VAT_PATTERN.match(str(data["vat_number"])):
                issue(warnings, "vat_number", "VAT number format looks unusual", "VAT_FORMAT_WARNING")

        exclude_id = existing.id if existing is not None else None
        if options.check_email_uniqueness and email:
            if self.repo.find_conflict(tenant_id, email=str(email), siret=None, exclude_id=exclude_id) is not None:
                issue(errors, "email", "client email already exists", "DUPLICATE_EMAIL")
        if options.check_siret_uniqueness and siret:
            if self.repo.find_conflict(tenant_id, email=None, siret=str(siret), exclude_id=exclude_id) is not None:
                issue(errors, "siret", "client siret already exists", "DUPLICATE_SIRET")

        if options.check_business_rules:
            client_type = merged("client_type") or "business"
            if client_type == "business" and not merged("company_name"):
                issue(errors, "company_name", "company_name is required for business clients", "REQUIRED_FIELD")
            if client_type == "individual":
                for field in ("first_name", "last_name"):
                    if not merged(field):
                        issue(errors, field, f"{field} is required for individual clients", "REQUIRED_FIELD")

        return {"is_valid": not errors, "errors": errors, "warnings": warnings}

    def _ensure_unique(self, tenant_id, *, email=None, siret=None, exclude_id=None) -> None:
        existing = self.repo.find_conflict(tenant_id, email=email, siret=siret, exclude_id=exclude_id)
        if existing is None:
            return
        field = "email" if email and existing.email.lower() == email.lower() else "siret"
        raise AppError(ErrorCatalog.CONFLICT, details={"field": field, "message": f"client {field} already exists"})

    @staticmethod
    def _check_version(client, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != client.version:
            raise AppError(
                ErrorCatalog.VERSION_CONFLICT,
                details={"expected_version": expected_version, "current_version": client.version},
            )

    def _audit(self, client, user, action: str, *, before=None, after=None) -> None:
        self.audit.record_event(
            AuditEventPayload(
                tenant_id=str(client.tenant_id),
                user_id=str(user.id),
                trace_id=self.trace_id or None,
                actor=user.username,
                action=action,
                entity_type="client",
                entity_id=str(client.id),
                before=before,
                after=after,
            )
        )
