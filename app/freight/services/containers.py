from collections import Counter
from datetime import datetime

from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.db.models import BillOfLading, Container
from app.freight.repos.bills_of_lading import BillOfLadingRepository, ContainerRepository
from app.freight.repos.clients import ClientRepository
from app.freight.repos.folders import FolderRepository
from app.freight.services.audit import AuditEventPayload, AuditService
from app.freight.services.workflow import user_can_modify_folder


ARRIVAL_FIELDS = (
    "arrival_status",
    "actual_arrival_date",
    "arrival_notes",
    "arrival_location",
    "customs_clearance_date",
    "delivery_ready_date",
)


def container_summary(containers) -> dict:
    """Totals for a container list; containers without a known type count as one TEU."""
    arrival = Counter(container.arrival_status or "unknown" for container in containers)
    types = Counter()
    total_teu = 0.0
    for container in containers:
        container_type = container.container_type
        if container_type is None:
            types["unknown_0ft"] += 1
            total_teu += 1
        else:
            types[f"{container_type.iso_code}_{container_type.size_feet}ft"] += 1
            total_teu += container_type.teu
    return {
        "total_containers": len(containers),
        "total_teu": total_teu,
        "total_volume_cbm": sum(container.volume_cbm or 0 for container in containers),
        "total_gross_weight_kg": sum(container.gross_weight_kg or 0 for container in containers),
        "arrival_status_summary": dict(arrival),
        "container_types_summary": dict(types),
    }


class ContainerService:
    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.bills = BillOfLadingRepository(db)
        self.containers = ContainerRepository(db)
        self.folders = FolderRepository(db)
        self.clients = ClientRepository(db)
        self.audit = AuditService(db)

    def get_bill(self, bl_id, tenant_id) -> BillOfLading:
        bill = self.bills.get_by_id(bl_id, tenant_id)
        if bill is None:
            raise AppError(ErrorCatalog.BILL_OF_LADING_NOT_FOUND, details={"bl_id": str(bl_id)})
        return bill

    def list_bills(self, tenant_id, *, status: str | None, page: int, limit: int):
        return self.bills.list_by_tenant(tenant_id, status=status, limit=limit, offset=(page - 1) * limit)

    def create_bill(self, tenant_id, user, payload) -> BillOfLading:
        if self.bills.get_by_number(payload.bl_number, tenant_id) is not None:
            raise AppError(
                ErrorCatalog.CONFLICT,
                details={"field": "bl_number", "message": "bill of lading number already exists"},
            )
        if payload.client_id is not None and self.clients.get_by_id(payload.client_id, tenant_id) is None:
            raise AppError(ErrorCatalog.CLIENT_NOT_FOUND, details={"client_id": str(payload.client_id)})
        now = datetime.utcnow()
        bill = BillOfLading(
            tenant_id=tenant_id,
            **payload.model_dump(exclude={"containers"}),
            created_by=user.id,
            created_at=now,
            updated_at=now,
        )
        self.bills.add(bill)
        self._add_containers(bill, payload.containers)
        self.db.commit()
        self._audit(
            user,
            tenant_id,
            "bill_of_lading.create",
            entity_type="bill_of_lading",
            entity_id=bill.id,
            after={"bl_number": bill.bl_number, "containers": [item.container_number for item in payload.containers]},
        )
        return self.get_bill(bill.id, tenant_id)

    def add_containers(self, bl_id, tenant_id, user, containers) -> BillOfLading:
        bill = self.get_bill(bl_id, tenant_id)
        self._add_containers(bill, containers)
        self.db.commit()
        self._audit(
            user,
            tenant_id,
            "bill_of_lading.add_containers",
            entity_type="bill_of_lading",
            entity_id=bill.id,
            after={"containers": [item.container_number for item in containers]},
        )
        self.db.refresh(bill)
        return bill

    def folder_containers(self, folder_id, tenant_id, user) -> tuple:
        folder = self._folder_for_user(folder_id, tenant_id, user)
        if folder.bl_id is None:
            return folder, [], container_summary([])
        containers = self.containers.list_for_bill(folder.bl_id, tenant_id)
        return folder, containers, container_summary(containers)

    def update_arrivals(self, folder_id, tenant_id, user, updates) -> list[dict]:
        folder = self._folder_for_user(folder_id, tenant_id, user)
        if folder.bl_id is None:
            raise AppError(ErrorCatalog.FOLDER_HAS_NO_BILL_OF_LADING, details={"folder_id": str(folder.id)})

        results = []
        for update in updates:
            changes = update.model_dump(include=set(ARRIVAL_FIELDS), exclude_unset=True)
            if not changes:
                results.append({"container_id": update.container_id, "success": False, "skipped": True})
                continue
            container = self.containers.get_in_bill(update.container_id, folder.bl_id, tenant_id, for_update=True)
            if container is None:
                results.append(
                    {"container_id": update.container_id, "success": False, "error": "Container not found in bill of lading"}
                )
                continue
            for key, value in changes.items():
                setattr(container, key, value)
            container.updated_at = datetime.utcnow()
            results.append({"container_id": update.container_id, "success": True, "container": container})

        self.db.commit()
        updated = [str(item["container_id"]) for item in results if item["success"]]
        if updated:
            self._audit(
                user,
                tenant_id,
                "container.arrival_update",
                entity_type="folder",
                entity_id=folder.id,
                after={"containers": updated},
                metadata={"folder_number": folder.folder_number, "bl_id": str(folder.bl_id)},
            )
        return results

    def _folder_for_user(self, folder_id, tenant_id, user):
        folder = self.folders.get_by_id(folder_id, tenant_id)
        if folder is None:
            raise AppError(ErrorCatalog.FOLDER_NOT_FOUND, details={"folder_id": str(folder_id)})
        if not user_can_modify_folder(user, folder):
            raise AppError(ErrorCatalog.FOLDER_MODIFY_DENIED)
        return folder

    def _add_containers(self, bill, containers) -> None:
        seen = {item.container_number for item in self.containers.list_for_bill(bill.id, bill.tenant_id)}
        now = datetime.utcnow()
        for item in containers:
            if item.container_number in seen:
                raise AppError(
                    ErrorCatalog.CONFLICT,
                    details={"field": "container_number", "message": f"{item.container_number} already exists"},
                )
            seen.add(item.container_number)
            container_type_id = None
            if item.container_type:
                container_type = self.containers.get_type_by_code(item.container_type)
                if container_type is None:
                    raise AppError(
                        ErrorCatalog.VALIDATION_ERROR,
                        details={"field": "container_type", "message": f"unknown ISO code {item.container_type}"},
                    )
                container_type_id = container_type.id
            self.containers.add(
                Container(
                    tenant_id=bill.tenant_id,
                    bl_id=bill.id,
                    container_number=item.container_number,
                    container_type_id=container_type_id,
                    **item.model_dump(exclude={"container_number", "container_type"}),
                    arrival_status="scheduled",
                    created_at=now,
                    updated_at=now,
                )
            )

    def _audit(self, user, tenant_id, action: str, *, entity_type: str, entity_id, after=None, metadata=None) -> None:
        self.audit.record_event(
            AuditEventPayload(
                tenant_id=str(tenant_id),
                user_id=str(user.id),
                trace_id=self.trace_id or None,
                actor=user.username,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                after=after,
                metadata=metadata,
            )
        )
