from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.freight.core.config import settings
from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.core.scope import is_tenant_admin
from app.freight.db.models import FolderProcessingStage, StageTransition
from app.freight.repos.folders import FolderRepository
from app.freight.repos.stages import StageRepository
from app.freight.repos.users import UserRepository
from app.freight.services.audit import AuditEventPayload, AuditService, audit_snapshot
from app.freight.services.stage_rules import (
    DONE_STATUSES,
    STATUS_TO_ACTION,
    action_allowed,
    can_transition,
    compute_health,
    compute_progress,
    merge_documents,
)

logger = logging.getLogger(__name__)

STAGE_AUDIT_FIELDS = (
    "stage",
    "status",
    "priority",
    "assigned_to",
    "due_date",
    "blocking_reason",
    "skip_reason",
)

UPDATABLE_STAGE_FIELDS = (
    "status",
    "priority",
    "assigned_to",
    "due_date",
    "estimated_completion_date",
    "notes",
    "internal_comments",
    "client_visible_comments",
    "documents_required",
    "documents_received",
)

ACTION_TARGETS = {
    "start": "in_progress",
    "complete": "completed",
    "block": "blocked",
    "unblock": None,
    "skip": "skipped",
}

ACTION_MESSAGES = {
    "start": "Stage started",
    "complete": "Stage completed",
    "block": "Stage blocked",
    "unblock": "Stage unblocked",
    "skip": "Stage skipped",
    "update": "Stage updated",
}


def user_can_modify_folder(user, folder) -> bool:
    if is_tenant_admin(user.role):
        return True
    return user.id in (folder.created_by, folder.assigned_to)


def user_can_modify_stage(user, folder, stage) -> bool:
    if is_tenant_admin(user.role):
        return True
    return user.id in (folder.created_by, folder.assigned_to, stage.assigned_to)


def _append_notes(existing: str | None, notes: str | None) -> str | None:
    if not notes:
        return existing
    if not existing:
        return notes
    return f"{existing}\n{notes}"


class StageWorkflowService:
    """Drives folder processing stages through their lifecycle.

    Every mutating call locks the folder and the targeted stage row, checks
    the caller against the stage, applies the transition, writes a history
    row and commits once. Audit events are written after the commit.
    """

    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.folders = FolderRepository(db)
        self.stages = StageRepository(db)
        self.users = UserRepository(db)
        self.audit = AuditService(db)

    def get_folder(self, folder_id, tenant_id, *, for_update: bool = False):
        folder = self.folders.get_by_id(folder_id, tenant_id, for_update=for_update)
        if folder is None:
            raise AppError(ErrorCatalog.FOLDER_NOT_FOUND, details={"folder_id": str(folder_id)})
        return folder

    def get_stage(self, folder, stage_name: str, *, for_update: bool = False) -> FolderProcessingStage:
        stage = self.stages.get(folder.id, folder.tenant_id, stage_name, for_update=for_update)
        if stage is None:
            raise AppError(ErrorCatalog.STAGE_NOT_FOUND, details={"stage": stage_name})
        return stage

    def list_stages(self, folder):
        return self.stages.list_for_folder(folder.id, folder.tenant_id)

    def progress(self, folder):
        return compute_progress(self.list_stages(folder))

    def health(self, folder):
        return compute_health(
            self.list_stages(folder),
            folder_status=folder.status,
            blocked_alert_days=settings.STAGE_BLOCKED_ALERT_DAYS,
        )

    def history(self, folder, stage_name: str):
        stage = self.get_stage(folder, stage_name)
        return self.stages.list_transitions(stage.id)

    def initialize_folder_stages(self, folder, user) -> list[FolderProcessingStage]:
        if not user_can_modify_folder(user, folder):
            raise AppError(ErrorCatalog.FOLDER_MODIFY_DENIED)
        if self.stages.count_for_folder(folder.id):
            raise AppError(ErrorCatalog.STAGES_ALREADY_INITIALIZED, details={"folder_id": str(folder.id)})

        now = datetime.utcnow()
        elapsed_hours = 0
        rows = []
        for default in self.stages.list_active_defaults():
            elapsed_hours += default.default_duration_hours
            rows.append(
                FolderProcessingStage(
                    tenant_id=folder.tenant_id,
                    folder_id=folder.id,
                    stage=default.stage,
                    sequence_order=default.sequence_order,
                    status="pending",
                    priority=default.default_priority,
                    is_mandatory=default.is_mandatory,
                    can_be_skipped=default.can_be_skipped,
                    due_date=now + timedelta(hours=elapsed_hours),
                    documents_required=list(default.requires_documents or []),
                    documents_received=[],
                    updated_by=user.id,
                    created_at=now,
                    updated_at=now,
                )
            )
        self.stages.add_all(rows)
        self.db.commit()
        self._audit(folder, None, user, "stage.initialize", after={"stages": [row.stage for row in rows]})
        return self.list_stages(folder)

    def start_processing_stage(self, folder_id, tenant_id, stage_name, user, *, assigned_to=None, notes=None):
        return self.apply_action(
            folder_id, tenant_id, stage_name, user, action="start", assigned_to=assigned_to, notes=notes
        )

    def complete_processing_stage(self, folder_id, tenant_id, stage_name, user, *, notes=None, documents=None):
        return self.apply_action(
            folder_id, tenant_id, stage_name, user, action="complete", notes=notes, documents=documents
        )

    def block_processing_stage(self, folder_id, tenant_id, stage_name, user, *, blocking_reason=None):
        return self.apply_action(
            folder_id, tenant_id, stage_name, user, action="block", blocking_reason=blocking_reason
        )

    def unblock_processing_stage(self, folder_id, tenant_id, stage_name, user, *, notes=None):
        return self.apply_action(folder_id, tenant_id, stage_name, user, action="unblock", notes=notes)

    def skip_processing_stage(self, folder_id, tenant_id, stage_name, user, *, skip_reason="other", notes=None):
        return self.apply_action(
            folder_id, tenant_id, stage_name, user, action="skip", skip_reason=skip_reason, notes=notes
        )

    def apply_action(
        self,
        folder_id,
        tenant_id,
        stage_name: str,
        user,
        *,
        action: str,
        assigned_to=None,
        notes: str | None = None,
        documents: list[str] | None = None,
        blocking_reason: str | None = None,
        skip_reason: str | None = None,
    ) -> FolderProcessingStage:
        folder, stage = self._lock_for_change(folder_id, tenant_id, stage_name, user)
        before = audit_snapshot(stage, STAGE_AUDIT_FIELDS)
        target = self._target_for_action(stage, action)
        if assigned_to is not None:
            self._ensure_assignee(assigned_to, folder.tenant_id)
        self._transition(
            folder,
            stage,
            user,
            action=action,
            target=target,
            assigned_to=assigned_to,
            notes=notes,
            documents=documents,
            blocking_reason=blocking_reason,
            skip_reason=skip_reason,
        )
        stage.notes = _append_notes(stage.notes, notes)
        return self._finish(folder, stage, user, f"stage.{action}", before)

    def update_stage_fields(
        self,
        folder_id,
        tenant_id,
        stage_name: str,
        user,
        changes: dict,
        *,
        blocking_reason: str | None = None,
    ):
        changes = {key: value for key, value in changes.items() if key in UPDATABLE_STAGE_FIELDS}
        if not changes:
            raise AppError(ErrorCatalog.EMPTY_UPDATE, details={"allowed_fields": list(UPDATABLE_STAGE_FIELDS)})

        folder, stage = self._lock_for_change(folder_id, tenant_id, stage_name, user)
        before = audit_snapshot(stage, STAGE_AUDIT_FIELDS)
        if changes.get("assigned_to") is not None:
            self._ensure_assignee(changes["assigned_to"], folder.tenant_id)

        target = changes.pop("status", None)
        if target is not None and target != stage.status:
            action = STATUS_TO_ACTION.get(target, "update")
            self._transition(
                folder,
                stage,
                user,
                action=action,
                target=target,
                assigned_to=changes.get("assigned_to"),
                notes=changes.get("notes"),
                documents=changes.get("documents_received"),
                blocking_reason=blocking_reason,
                skip_reason="other",
            )
        for key, value in changes.items():
            setattr(stage, key, value)
        return self._finish(folder, stage, user, "stage.update", before)

    def _lock_for_change(self, folder_id, tenant_id, stage_name: str, user):
        folder = self.get_folder(folder_id, tenant_id, for_update=True)
        stage = self.get_stage(folder, stage_name, for_update=True)
        if not user_can_modify_stage(user, folder, stage):
            raise AppError(ErrorCatalog.STAGE_MODIFY_DENIED, details={"stage": stage_name})
        return folder, stage

    @staticmethod
    def _target_for_action(stage, action: str) -> str:
        if action not in ACTION_TARGETS:
            raise AppError(ErrorCatalog.INVALID_STAGE_ACTION, details={"action": action})
        if not action_allowed(action, stage.status):
            if action == "complete" and stage.status == "completed":
                raise AppError(ErrorCatalog.STAGE_ALREADY_COMPLETED, details={"stage": stage.stage})
            raise AppError(
                ErrorCatalog.INVALID_STAGE_TRANSITION,
                details={"stage": stage.stage, "from_status": stage.status, "action": action},
            )
        if action == "unblock":
            return stage.blocked_from_status or ("in_progress" if stage.started_at else "pending")
        return ACTION_TARGETS[action]

    def _ensure_assignee(self, assigned_to, tenant_id) -> None:
        if self.users.get_by_id_in_tenant(assigned_to, tenant_id) is None:
            raise AppError(ErrorCatalog.INVALID_ASSIGNEE, details={"assigned_to": str(assigned_to)})

    def _transition(
        self,
        folder,
        stage,
        user,
        *,
        action: str,
        target: str,
        assigned_to=None,
        notes=None,
        documents=None,
        blocking_reason=None,
        skip_reason=None,
    ) -> None:
        from_status = stage.status
        if target == "completed" and from_status == "completed":
            raise AppError(ErrorCatalog.STAGE_ALREADY_COMPLETED, details={"stage": stage.stage})
        if not can_transition(from_status, target):
            raise AppError(
                ErrorCatalog.INVALID_STAGE_TRANSITION,
                details={"stage": stage.stage, "from_status": from_status, "to_status": target},
            )

        now = datetime.utcnow()
        reason = None
        if target == "in_progress":
            self._ensure_previous_mandatory_done(folder, stage)
            stage.started_at = stage.started_at or now
            stage.started_by = stage.started_by or user.id
            stage.assigned_to = assigned_to or stage.assigned_to or user.id
            if folder.status == "draft":
                folder.status = "active"
                folder.updated_at = now
        elif target == "completed":
            stage.completed_at = now
            stage.completed_by = user.id
            if stage.started_at is not None:
                stage.actual_duration_hours = round((now - stage.started_at).total_seconds() / 3600, 2)
            stage.documents_received = merge_documents(stage.documents_received, documents)
        elif target == "blocked":
            reason = (blocking_reason or "").strip()
            if not reason:
                raise AppError(ErrorCatalog.BLOCKING_REASON_REQUIRED)
            stage.blocked_from_status = from_status
            stage.blocked_at = now
            stage.blocking_reason = reason
        elif target == "skipped":
            if stage.is_mandatory or not stage.can_be_skipped:
                raise AppError(ErrorCatalog.STAGE_NOT_SKIPPABLE, details={"stage": stage.stage})
            reason = skip_reason or "other"
            stage.skipped_at = now
            stage.skipped_by = user.id
            stage.skip_reason = reason
        if from_status == "blocked":
            reason = stage.blocking_reason
            stage.blocked_at = None
            stage.blocking_reason = None
            stage.blocked_from_status = None

        stage.status = target
        self.stages.add_transition(
            StageTransition(
                tenant_id=folder.tenant_id,
                folder_id=folder.id,
                stage_id=stage.id,
                stage=stage.stage,
                action=action,
                from_status=from_status,
                to_status=target,
                actor_id=user.id,
                reason=reason,
                notes=notes,
                created_at=now,
            )
        )
        if target in DONE_STATUSES:
            self._complete_folder_if_done(folder)

    def _ensure_previous_mandatory_done(self, folder, stage) -> None:
        self.db.flush()
        incomplete = [
            other.stage
            for other in self.list_stages(folder)
            if other.sequence_order < stage.sequence_order
            and other.is_mandatory
            and other.status not in DONE_STATUSES
        ]
        if incomplete:
            raise AppError(ErrorCatalog.PREVIOUS_STAGES_INCOMPLETE, details={"incomplete_stages": incomplete})

    def _complete_folder_if_done(self, folder) -> None:
        self.db.flush()
        stages = self.list_stages(folder)
        if stages and all(item.status in DONE_STATUSES for item in stages):
            folder.status = "completed"
            folder.updated_at = datetime.utcnow()
            logger.info("folder %s completed all processing stages", folder.folder_number)

    def _finish(self, folder, stage, user, action: str, before: dict) -> FolderProcessingStage:
        stage.updated_at = datetime.utcnow()
        stage.updated_by = user.id
        stage_name = stage.stage
        self.db.commit()
        self._audit(folder, stage, user, action, before=before, after=audit_snapshot(stage, STAGE_AUDIT_FIELDS))
        return self.get_stage(folder, stage_name)

    def _audit(self, folder, stage, user, action: str, *, before=None, after=None) -> None:
        self.audit.record_event(
            AuditEventPayload(
                tenant_id=str(folder.tenant_id),
                user_id=str(user.id),
                trace_id=self.trace_id or None,
                actor=user.username,
                action=action,
                entity_type="folder_processing_stage" if stage is not None else "folder",
                entity_id=str(stage.id) if stage is not None else str(folder.id),
                before=before,
                after=after,
                metadata={"folder_id": str(folder.id), "folder_number": folder.folder_number},
            )
        )
