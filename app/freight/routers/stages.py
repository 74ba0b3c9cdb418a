from fastapi import APIRouter, Depends, Request

from app.freight.core.deps import get_current_token_data, require_active_user, require_permission
from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.core.scope import resolve_tenant_id
from app.freight.db.session import get_db
from app.freight.routers.common import begin_idempotent, parse_uuid, trace_id_of
from app.freight.schemas.stages import (
    FolderHealthResponse,
    ProgressResponse,
    StageDetailResponse,
    StageHistoryResponse,
    StageInitializeResponse,
    StageIssueResponse,
    StageListResponse,
    StageMutationResponse,
    StageResponse,
    StageTransitionResponse,
    StageUpdateRequest,
)
from app.freight.services.stage_rules import STAGE_ORDER, is_valid_stage
from app.freight.services.workflow import ACTION_MESSAGES, StageWorkflowService

router = APIRouter()

_ACTION_PARAMETERS = {"action", "notes", "documents", "blocking_reason", "skip_reason"}


def _check_stage(stage: str) -> str:
    if not is_valid_stage(stage):
        raise AppError(ErrorCatalog.INVALID_STAGE, details={"stage": stage, "valid_stages": list(STAGE_ORDER)})
    return stage


def _stage_list(workflow: StageWorkflowService, folder) -> tuple[list[StageResponse], ProgressResponse]:
    stages = workflow.list_stages(folder)
    progress = workflow.progress(folder)
    return [StageResponse.model_validate(stage) for stage in stages], ProgressResponse.model_validate(progress)


@router.get("/folders/{folder_id}/stages", response_model=StageListResponse)
def list_stages(
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("STAGE_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    workflow = StageWorkflowService(db)
    folder = workflow.get_folder(folder_uuid, resolve_tenant_id(token_data, tenant_id))
    data, metrics = _stage_list(workflow, folder)
    return StageListResponse(data=data, metrics=metrics)


@router.post("/folders/{folder_id}/stages", response_model=StageInitializeResponse, status_code=201)
def initialize_stages(
    request: Request,
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("STAGE_MANAGE")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    workflow = StageWorkflowService(db, trace_id=trace_id_of(request))
    folder = workflow.get_folder(folder_uuid, resolve_tenant_id(token_data, tenant_id), for_update=True)
    workflow.initialize_folder_stages(folder, current_user)
    data, metrics = _stage_list(workflow, folder)
    return StageInitializeResponse(
        message=f"Processing stages initialized for folder {folder.folder_number}",
        data=data,
        metrics=metrics,
    )


@router.get("/folders/{folder_id}/health", response_model=FolderHealthResponse)
def folder_health(
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("STAGE_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    workflow = StageWorkflowService(db)
    folder = workflow.get_folder(folder_uuid, resolve_tenant_id(token_data, tenant_id))
    health = workflow.health(folder)
    return FolderHealthResponse(
        folder_id=folder.id,
        folder_number=folder.folder_number,
        folder_status=folder.status,
        progress=ProgressResponse.model_validate(health.progress),
        attention_score=health.attention_score,
        attention_level=health.attention_level,
        health_status=health.health_status,
        issues=[StageIssueResponse.model_validate(issue) for issue in health.issues],
    )


@router.get("/folders/{folder_id}/stages/{stage}", response_model=StageDetailResponse)
def get_stage(
    folder_id: str,
    stage: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("STAGE_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    _check_stage(stage)
    workflow = StageWorkflowService(db)
    folder = workflow.get_folder(folder_uuid, resolve_tenant_id(token_data, tenant_id))
    return StageDetailResponse(data=StageResponse.model_validate(workflow.get_stage(folder, stage)))


@router.get("/folders/{folder_id}/stages/{stage}/history", response_model=StageHistoryResponse)
def stage_history(
    folder_id: str,
    stage: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("STAGE_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    _check_stage(stage)
    workflow = StageWorkflowService(db)
    folder = workflow.get_folder(folder_uuid, resolve_tenant_id(token_data, tenant_id))
    rows = workflow.history(folder, stage)
    return StageHistoryResponse(stage=stage, data=[StageTransitionResponse.model_validate(row) for row in rows])


@router.put("/folders/{folder_id}/stages/{stage}", response_model=StageMutationResponse)
def update_stage(
    request: Request,
    folder_id: str,
    stage: str,
    payload: StageUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("STAGE_MANAGE")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    _check_stage(stage)
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(
        request,
        db,
        tenant_id=scoped_tenant_id,
        payload=payload.model_dump(mode="json", exclude_unset=True),
    )
    if replay:
        return replay.to_response()

    workflow = StageWorkflowService(db, trace_id=trace_id_of(request))
    if payload.action is not None:
        updated = workflow.apply_action(
            folder_uuid,
            scoped_tenant_id,
            stage,
            current_user,
            action=payload.action,
            assigned_to=payload.assigned_to,
            notes=payload.notes,
            documents=payload.documents,
            blocking_reason=payload.blocking_reason,
            skip_reason=payload.skip_reason,
        )
        message = ACTION_MESSAGES[payload.action]
    else:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if key not in _ACTION_PARAMETERS
        }
        if payload.notes is not None:
            changes["notes"] = payload.notes
        updated = workflow.update_stage_fields(
            folder_uuid,
            scoped_tenant_id,
            stage,
            current_user,
            changes,
            blocking_reason=payload.blocking_reason,
        )
        message = ACTION_MESSAGES["update"]

    response = StageMutationResponse(message=message, data=StageResponse.model_validate(updated))
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response
