from fastapi import APIRouter, Depends, Query, Request

from app.freight.core.deps import get_current_token_data, require_active_user, require_permission
from app.freight.core.scope import resolve_tenant_id
from app.freight.db.session import get_db
from app.freight.routers.common import begin_idempotent, parse_uuid, trace_id_of
from app.freight.schemas.common import Pagination
from app.freight.schemas.containers import (
    BillOfLadingCreateRequest,
    BillOfLadingListResponse,
    BillOfLadingResponse,
    BillOfLadingStatus,
    ContainerAddRequest,
    ContainerBatchSummary,
    ContainerBatchUpdateRequest,
    ContainerBatchUpdateResponse,
    ContainerResponse,
    ContainerSummary,
    ContainerUpdateResult,
    FolderContainerInfo,
    FolderContainersResponse,
)
from app.freight.services.containers import ContainerService

router = APIRouter()


@router.get("/bills-of-lading", response_model=BillOfLadingListResponse)
def list_bills_of_lading(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: BillOfLadingStatus | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CONTAINER_VIEW")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    rows, total = ContainerService(db).list_bills(scoped_tenant_id, status=status, page=page, limit=limit)
    return BillOfLadingListResponse(
        data=[BillOfLadingResponse.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.post("/bills-of-lading", response_model=BillOfLadingResponse, status_code=201)
def create_bill_of_lading(
    request: Request,
    payload: BillOfLadingCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CONTAINER_MANAGE")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json"))
    if replay:
        return replay.to_response()
    bill = ContainerService(db, trace_id=trace_id_of(request)).create_bill(scoped_tenant_id, current_user, payload)
    response = BillOfLadingResponse.model_validate(bill)
    if context is not None:
        context.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.get("/bills-of-lading/{bl_id}", response_model=BillOfLadingResponse)
def get_bill_of_lading(
    bl_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CONTAINER_VIEW")),
    db=Depends(get_db),
):
    bl_uuid = parse_uuid(bl_id, "bl_id")
    bill = ContainerService(db).get_bill(bl_uuid, resolve_tenant_id(token_data, tenant_id))
    return BillOfLadingResponse.model_validate(bill)


@router.post("/bills-of-lading/{bl_id}/containers", response_model=BillOfLadingResponse, status_code=201)
def add_containers(
    request: Request,
    bl_id: str,
    payload: ContainerAddRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CONTAINER_MANAGE")),
    db=Depends(get_db),
):
    bl_uuid = parse_uuid(bl_id, "bl_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    bill = ContainerService(db, trace_id=trace_id_of(request)).add_containers(
        bl_uuid, scoped_tenant_id, current_user, payload.containers
    )
    return BillOfLadingResponse.model_validate(bill)


@router.get("/folders/{folder_id}/containers", response_model=FolderContainersResponse)
def folder_containers(
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CONTAINER_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    folder, containers, summary = ContainerService(db).folder_containers(
        folder_uuid, resolve_tenant_id(token_data, tenant_id), current_user
    )
    return FolderContainersResponse(
        data=[ContainerResponse.model_validate(container) for container in containers],
        folder_info=FolderContainerInfo(
            id=folder.id,
            folder_number=folder.folder_number,
            has_bill_of_lading=folder.bl_id is not None,
            bl_id=folder.bl_id,
        ),
        container_summary=ContainerSummary(**summary),
    )


@router.put("/folders/{folder_id}/containers", response_model=ContainerBatchUpdateResponse)
def update_folder_containers(
    request: Request,
    folder_id: str,
    payload: ContainerBatchUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CONTAINER_MANAGE")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json", exclude_unset=True)
    )
    if replay:
        return replay.to_response()

    outcomes = ContainerService(db, trace_id=trace_id_of(request)).update_arrivals(
        folder_uuid, scoped_tenant_id, current_user, payload.container_updates
    )
    results = [
        ContainerUpdateResult(
            container_id=outcome["container_id"],
            success=outcome["success"],
            skipped=outcome.get("skipped", False),
            error=outcome.get("error"),
            data=ContainerResponse.model_validate(outcome["container"]) if outcome["success"] else None,
        )
        for outcome in outcomes
    ]
    successful = sum(1 for result in results if result.success)
    skipped = sum(1 for result in results if result.skipped)
    response = ContainerBatchUpdateResponse(
        message=f"{successful} containers updated",
        results=results,
        summary=ContainerBatchSummary(
            total_updates=len(results),
            successful_updates=successful,
            failed_updates=len(results) - successful - skipped,
            skipped_updates=skipped,
        ),
    )
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response
