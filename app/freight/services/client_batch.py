import logging
import time

from app.freight.core.error_catalog import AppError
from app.freight.repos.clients import ClientRepository
from app.freight.repos.folders import FolderRepository
from app.freight.services.clients import CLOSED_FOLDER_STATUSES, ClientService

logger = logging.getLogger(__name__)


def _issue(client_id, message: str, code: str) -> dict:
    return {"client_id": client_id, "error": message, "error_code": code}


class ClientBatchService:
    """Apply one operation to many clients.

    Missing or deleted clients are reported during preflight; unless `force`
    is set, any such error stops the batch before anything is written. Each
    client is then committed on its own so one failure does not undo the rest.
    """

    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.clients = ClientService(db, trace_id=trace_id)
        self.repo = ClientRepository(db)
        self.folders = FolderRepository(db)

    def run(self, tenant_id, user, request) -> dict:
        started = time.perf_counter()
        client_ids = list(dict.fromkeys(request.client_ids))
        found = self.repo.get_many_any_state(client_ids, tenant_id)
        errors: list[dict] = []
        warnings: list[dict] = []
        targets = []
        for client_id in client_ids:
            client = found.get(client_id)
            if client is None:
                errors.append(_issue(client_id, "Client not found", "NOT_FOUND"))
            elif client.deleted_at is not None:
                errors.append(_issue(client_id, "Client is deleted", "DELETED_CLIENT"))
            else:
                targets.append(client_id)

        if request.operation == "delete" and targets:
            busy = self.folders.client_ids_with_open_folders(tenant_id, targets, CLOSED_FOLDER_STATUSES)
            warnings.extend(
                _issue(client_id, "Client has open folders", "ACTIVE_FOLDERS")
                for client_id in targets
                if client_id in busy
            )

        executed = not errors or request.force
        success_ids = []
        if executed:
            for client_id in targets:
                try:
                    self._apply(client_id, tenant_id, user, request)
                except AppError as exc:
                    self.db.rollback()
                    errors.append(_issue(client_id, exc.error.message, exc.error.code))
                else:
                    success_ids.append(client_id)

        logger.info(
            "client batch %s: %d succeeded, %d failed",
            request.operation,
            len(success_ids),
            len(errors),
            extra={"trace_id": self.trace_id},
        )
        return {
            "operation": request.operation,
            "executed": executed,
            "success_count": len(success_ids),
            "error_count": len(errors),
            "warning_count": len(warnings),
            "success_ids": success_ids,
            "errors": errors,
            "warnings": warnings,
            "execution_time_ms": int((time.perf_counter() - started) * 1000),
        }

    def _apply(self, client_id, tenant_id, user, request) -> None:
        operation = request.operation
        data = request.data
        if operation == "delete":
            self.clients.delete(client_id, tenant_id, user)
            return
        if operation == "update":
            changes = data.updates.model_dump(exclude_unset=True)
        elif operation == "change_status":
            changes = {"status": data.new_status}
        else:
            current = list(self.clients.get(client_id, tenant_id).tags or [])
            if operation == "add_tags":
                changes = {"tags": current + [tag for tag in data.tags if tag not in current]}
            else:
                changes = {"tags": [tag for tag in current if tag not in data.tags]}
        self.clients.update(client_id, tenant_id, user, changes)
