import logging
import re
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from app.freight.core.config import settings
from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.core.scope import is_tenant_admin
from app.freight.db.models import Folder
from app.freight.repos.bills_of_lading import BillOfLadingRepository
from app.freight.repos.clients import ClientRepository
from app.freight.repos.folders import FolderRepository
from app.freight.repos.users import UserRepository
from app.freight.services.audit import AuditEventPayload, AuditService, audit_snapshot
from app.freight.services.stage_rules import (
    STAGE_ORDER,
    STAGE_STATUSES,
    compute_health,
    percentage,
    round_half_up,
)
from app.freight.services.workflow import StageWorkflowService, user_can_modify_folder

logger = logging.getLogger(__name__)

DELETE_PROTECTED_STATUSES = frozenset({"shipped", "delivered", "completed"})
STATS_TYPES = ("overview", "transport", "assignee", "stages", "performance", "period")
PERIOD_MONTHS = 12
PERIOD_PATTERN = re.compile(r"^\d{4}(-(0[1-9]|1[0-2]))?$")

FOLDER_AUDIT_FIELDS = (
    "folder_number",
    "status",
    "priority",
    "transport_type",
    "assigned_to",
    "client_id",
    "bl_id",
    "expected_delivery_date",
    "actual_delivery_date",
)

UPDATABLE_FOLDER_FIELDS = (
    "transport_type",
    "status",
    "title",
    "description",
    "client_reference",
    "folder_date",
    "expected_delivery_date",
    "actual_delivery_date",
    "priority",
    "internal_notes",
    "client_id",
    "bl_id",
    "assigned_to",
)

NON_NULLABLE_FIELDS = frozenset({"transport_type", "status", "priority", "folder_date"})


def format_folder_number(transport_type: str, folder_date: date, sequence: int) -> str:
    return f"{transport_type}{folder_date:%y%m%d}-{sequence:06d}"


def check_folder_dates(
    folder_date: date | None,
    expected_delivery_date: date | None,
    actual_delivery_date: date | None = None,
) -> None:
    if folder_date and expected_delivery_date and expected_delivery_date < folder_date:
        raise AppError(
            ErrorCatalog.INVALID_DATE_RANGE,
            details={"field": "expected_delivery_date", "message": "must not be before folder_date"},
        )
    if expected_delivery_date and actual_delivery_date and actual_delivery_date < expected_delivery_date:
        raise AppError(
            ErrorCatalog.INVALID_DATE_RANGE,
            details={"field": "actual_delivery_date", "message": "must not be before expected_delivery_date"},
        )


class FolderService:
    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.repo = FolderRepository(db)
        self.clients = ClientRepository(db)
        self.bills = BillOfLadingRepository(db)
        self.users = UserRepository(db)
        self.workflow = StageWorkflowService(db, trace_id=trace_id)
        self.audit = AuditService(db)

    def get(self, folder_id, tenant_id) -> Folder:
        return self.workflow.get_folder(folder_id, tenant_id)

    def create(self, tenant_id, user, payload) -> tuple[Folder, bool | None]:
        folder_date = payload.folder_date or date.today()
        check_folder_dates(folder_date, payload.expected_delivery_date)
        self._check_references(
            tenant_id,
            client_id=payload.client_id,
            bl_id=payload.bl_id,
            assigned_to=payload.assigned_to,
        )

        sequence = self.repo.next_sequence(tenant_id, payload.transport_type, folder_date)
        now = datetime.utcnow()
        folder = Folder(
            tenant_id=tenant_id,
            folder_number=format_folder_number(payload.transport_type, folder_date, sequence),
            folder_date=folder_date,
            transport_type=payload.transport_type,
            status=payload.status,
            priority=payload.priority,
            title=payload.title,
            description=payload.description,
            client_reference=payload.client_reference,
            expected_delivery_date=payload.expected_delivery_date,
            internal_notes=payload.internal_notes,
            client_id=payload.client_id,
            bl_id=payload.bl_id,
            assigned_to=payload.assigned_to,
            created_by=user.id,
            updated_by=user.id,
            created_at=now,
            updated_at=now,
        )
        self.repo.add(folder)
        self.db.commit()
        self._audit(folder, user, "folder.create", after=audit_snapshot(folder, FOLDER_AUDIT_FIELDS))

        stages_initialized = None
        if payload.initialize_stages:
            stages_initialized = self._initialize_stages(folder, user)
        return self.get(folder.id, tenant_id), stages_initialized

    def _initialize_stages(self, folder, user) -> bool:
        # Stage setup is secondary to the folder itself; a failure leaves the
        # folder in place and is reported through the response flag.
        try:
            self.workflow.initialize_folder_stages(folder, user)
        except (AppError, SQLAlchemyError) as exc:
            self.db.rollback()
            logger.warning(
                "stage initialization failed for folder %s: %s",
                folder.folder_number,
                exc,
                extra={"trace_id": self.trace_id},
            )
            return False
        return True

    def update(self, folder_id, tenant_id, user, changes: dict) -> Folder:
        changes = {
            key: value
            for key, value in changes.items()
            if key in UPDATABLE_FOLDER_FIELDS and (value is not None or key not in NON_NULLABLE_FIELDS)
        }
        if not changes:
            raise AppError(ErrorCatalog.EMPTY_UPDATE, details={"allowed_fields": list(UPDATABLE_FOLDER_FIELDS)})

        folder = self.workflow.get_folder(folder_id, tenant_id, for_update=True)
        if not user_can_modify_folder(user, folder):
            raise AppError(ErrorCatalog.FOLDER_MODIFY_DENIED)
        check_folder_dates(
            changes.get("folder_date", folder.folder_date),
            changes.get("expected_delivery_date", folder.expected_delivery_date),
            changes.get("actual_delivery_date", folder.actual_delivery_date),
        )
        self._check_references(
            tenant_id,
            client_id=changes.get("client_id"),
            bl_id=changes.get("bl_id"),
            assigned_to=changes.get("assigned_to"),
        )

        before = audit_snapshot(folder, FOLDER_AUDIT_FIELDS)
        for key, value in changes.items():
            setattr(folder, key, value)
        folder.updated_by = user.id
        folder.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit(folder, user, "folder.update", before=before, after=audit_snapshot(folder, FOLDER_AUDIT_FIELDS))
        return self.get(folder_id, tenant_id)

    def delete(self, folder_id, tenant_id, user) -> Folder:
        folder = self.workflow.get_folder(folder_id, tenant_id, for_update=True)
        if folder.created_by != user.id and not is_tenant_admin(user.role):
            raise AppError(ErrorCatalog.FOLDER_MODIFY_DENIED)
        if folder.status in DELETE_PROTECTED_STATUSES:
            raise AppError(ErrorCatalog.FOLDER_DELETE_PROTECTED, details={"status": folder.status})
        before = audit_snapshot(folder, FOLDER_AUDIT_FIELDS)
        self.repo.soft_delete(folder, user.id)
        self.db.commit()
        self._audit(folder, user, "folder.delete", before=before, after={"deleted_at": folder.deleted_at.isoformat()})
        return folder

    def search(self, tenant_id, *, filters: dict, query: str | None, page: int, limit: int, sort_field: str, sort_order: str):
        limit = max(1, min(limit, settings.FOLDERS_MAX_PAGE_SIZE))
        page = max(1, page)
        return self.repo.search(
            tenant_id,
            filters=filters,
            query=query,
            sort_field=sort_field,
            sort_order=sort_order,
            limit=limit,
            offset=(page - 1) * limit,
        ), page, limit

    def stats(
        self,
        tenant_id,
        stats_type: str,
        *,
        transport_type: str | None = None,
        assignee_id=None,
        period: str | None = None,
    ) -> dict:
        if stats_type not in STATS_TYPES:
            raise AppError(ErrorCatalog.INVALID_STATS_TYPE, details={"supported": list(STATS_TYPES)})
        if stats_type == "overview":
            return self._overview_stats(tenant_id)
        if stats_type == "transport":
            return {"by_transport": self._transport_stats(tenant_id, transport_type)}
        if stats_type == "assignee":
            return {"by_assignee": self._assignee_stats(tenant_id, assignee_id)}
        if stats_type == "stages":
            return self._stage_stats(tenant_id)
        if stats_type == "period":
            return self._period_stats(tenant_id, period)
        return self._performance_stats(tenant_id)

    def _check_references(self, tenant_id, *, client_id=None, bl_id=None, assigned_to=None) -> None:
        if client_id is not None and self.clients.get_by_id(client_id, tenant_id) is None:
            raise AppError(ErrorCatalog.CLIENT_NOT_FOUND, details={"client_id": str(client_id)})
        if bl_id is not None and self.bills.get_by_id(bl_id, tenant_id) is None:
            raise AppError(ErrorCatalog.BILL_OF_LADING_NOT_FOUND, details={"bl_id": str(bl_id)})
        if assigned_to is not None and self.users.get_by_id_in_tenant(assigned_to, tenant_id) is None:
            raise AppError(ErrorCatalog.INVALID_ASSIGNEE, details={"assigned_to": str(assigned_to)})

    def _folder_health(self, tenant_id):
        stages_by_folder = defaultdict(list)
        for stage in self.repo.list_active_stages(tenant_id):
            stages_by_folder[stage.folder_id].append(stage)
        for folder in self.repo.list_for_tenant(tenant_id):
            yield folder, compute_health(
                stages_by_folder.get(folder.id, []),
                folder_status=folder.status,
                blocked_alert_days=settings.STAGE_BLOCKED_ALERT_DAYS,
            )

    def _overview_stats(self, tenant_id) -> dict:
        by_status = self.repo.count_by(tenant_id, "status")
        attention = []
        for folder, health in self._folder_health(tenant_id):
            if health.attention_score <= 0:
                continue
            attention.append(
                {
                    "folder_id": str(folder.id),
                    "folder_number": folder.folder_number,
                    "attention_score": health.attention_score,
                    "attention_level": health.attention_level,
                    "issues": [issue.issue_type for issue in health.issues],
                }
            )
        attention.sort(key=lambda item: item["attention_score"], reverse=True)
        return {
            "by_transport": self._transport_stats(tenant_id, None),
            "by_status": by_status,
            "requiring_attention": attention[:10],
            "summary": {
                "total_folders": sum(by_status.values()),
                "high_attention_folders": sum(1 for item in attention if item["attention_score"] > 50),
            },
        }

    def _transport_stats(self, tenant_id, transport_type: str | None) -> list[dict]:
        grouped: dict[str, dict] = {}
        for transport, status, count in self.repo.count_by_transport_and_status(
            tenant_id, transport_type=transport_type
        ):
            entry = grouped.setdefault(transport, {"transport_type": transport, "total_folders": 0, "by_status": {}})
            entry["total_folders"] += count
            entry["by_status"][status] = count
        return [grouped[key] for key in sorted(grouped)]

    def _assignee_stats(self, tenant_id, assignee_id) -> list[dict]:
        grouped: dict[str, dict] = {}
        for assigned_to, status, count in self.repo.count_by_assignee_and_status(tenant_id, assignee_id=assignee_id):
            key = str(assigned_to) if assigned_to else None
            entry = grouped.setdefault(key, {"assigned_to": key, "total_folders": 0, "by_status": {}})
            entry["total_folders"] += count
            entry["by_status"][status] = count
        return sorted(grouped.values(), key=lambda item: (item["assigned_to"] is None, item["assigned_to"] or ""))

    def _stage_stats(self, tenant_id) -> dict:
        per_stage = {stage: {status: 0 for status in STAGE_STATUSES} for stage in STAGE_ORDER}
        for stage, status, count in self.repo.count_stages_by_status(tenant_id):
            per_stage.setdefault(stage, {status: 0 for status in STAGE_STATUSES})[status] = count
        statistics = []
        for stage, counts in per_stage.items():
            total = sum(counts.values())
            statistics.append(
                {
                    "stage": stage,
                    "total": total,
                    "by_status": counts,
                    "completion_rate": percentage(counts["completed"] + counts["skipped"], total),
                }
            )
        severity_rank = {"high": 0, "medium": 1, "low": 2}
        alerts = [
            {
                "folder_id": str(folder.id),
                "folder_number": folder.folder_number,
                "stage": issue.stage,
                "issue_type": issue.issue_type,
                "severity": issue.severity,
            }
            for folder, health in self._folder_health(tenant_id)
            for issue in health.issues
        ]
        alerts.sort(key=lambda item: severity_rank.get(item["severity"], 3))
        return {"stage_statistics": statistics, "alerts": alerts[:20]}

    def _performance_stats(self, tenant_id) -> dict:
        rows = []
        for folder, health in self._folder_health(tenant_id):
            rows.append(
                {
                    "folder_id": str(folder.id),
                    "folder_number": folder.folder_number,
                    "completion_percentage": health.progress.completion_percentage,
                    "current_stage": health.progress.current_stage,
                    "is_delayed": not health.progress.is_on_track,
                }
            )
        total = len(rows)
        completed = sum(1 for row in rows if row["completion_percentage"] == 100)
        delayed = sum(1 for row in rows if row["is_delayed"])
        average = round_half_up(sum(row["completion_percentage"] for row in rows) / total) if total else 0
        rows.sort(key=lambda row: row["completion_percentage"])
        return {
            "folders_progress": rows,
            "summary": {
                "total_folders": total,
                "completed_folders": completed,
                "delayed_folders": delayed,
                "average_progress": average,
                "completion_rate": percentage(completed, total),
                "delay_rate": percentage(delayed, total),
            },
        }

    def _period_stats(self, tenant_id, period: str | None) -> dict:
        if period is not None and not PERIOD_PATTERN.match(period):
            raise AppError(ErrorCatalog.INVALID_PERIOD, details={"period": period})
        buckets = defaultdict(
            lambda: {"total_folders": 0, "by_status": defaultdict(int), "by_transport": defaultdict(int)}
        )
        for folder in self.repo.list_for_tenant(tenant_id):
            month = folder.folder_date.strftime("%Y-%m")
            if period is not None and not month.startswith(period):
                continue
            bucket = buckets[month]
            bucket["total_folders"] += 1
            bucket["by_status"][folder.status] += 1
            bucket["by_transport"][folder.transport_type] += 1
        months = sorted(buckets, reverse=True)
        if period is None:
            months = months[:PERIOD_MONTHS]
        return {
            "period": period,
            "by_period": [
                {
                    "period": month,
                    "total_folders": buckets[month]["total_folders"],
                    "by_status": dict(buckets[month]["by_status"]),
                    "by_transport": dict(buckets[month]["by_transport"]),
                }
                for month in months
            ],
        }

    def _audit(self, folder, user, action: str, *, before=None, after=None) -> None:
        self.audit.record_event(
            AuditEventPayload(
                tenant_id=str(folder.tenant_id),
                user_id=str(user.id),
                trace_id=self.trace_id or None,
                actor=user.username,
                action=action,
                entity_type="folder",
                entity_id=str(folder.id),
                before=before,
                after=after,
            )
        )
