from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, Request

from app.freight.core.config import settings
from app.freight.core.deps import get_current_token_data, require_active_user, require_permission
from app.freight.core.scope import resolve_tenant_id
from app.freight.db.session import get_db
from app.freight.routers.common import begin_idempotent, parse_uuid, trace_id_of
from app.freight.schemas.common import Pagination
from app.freight.schemas.folders import (
    FolderCreateRequest,
    FolderDeleteResponse,
    FolderDetailResponse,
    FolderListResponse,
    FolderMutationResponse,
    FolderPriority,
    FolderResponse,
    FolderSearchRequest,
    FolderSearchResponse,
    FolderSortField,
    FolderStatsResponse,
    FolderStatus,
    FolderUpdateRequest,
    SearchMetadata,
    TransportType,
)
from app.freight.schemas.stages import ProgressResponse
from app.freight.services.folders import FolderService

router = APIRouter()


def _folder_response(service: FolderService, folder) -> FolderResponse:
    response = FolderResponse.model_validate(folder)
    response.metrics = ProgressResponse.model_validate(service.workflow.progress(folder))
    return response


def _range(start, end) -> dict | None:
    if start is None and end is None:
        return None
    return {"from": start, "to": end}


def _day_bounds(start: date | None, end: date | None) -> dict | None:
    # created_at is a timestamp; widen the dates to whole days.
    return _range(
        datetime.combine(start, time.min) if start else None,
        datetime.combine(end, time.max) if end else None,
    )


@router.get("/folders", response_model=FolderListResponse)
def list_folders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.FOLDERS_DEFAULT_PAGE_SIZE, ge=1),
    transport_type: TransportType | None = None,
    status: FolderStatus | None = None,
    priority: FolderPriority | None = None,
    assigned_to: str | None = None,
    created_by: str | None = None,
    client_id: str | None = None,
    has_bl: bool = False,
    no_bl: bool = False,
    date_from: date | None = None,
    date_to: date | None = None,
    created_from: date | None = None,
    created_to: date | None = None,
    search: str | None = None,
    sort_by: FolderSortField = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("FOLDER_VIEW")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    filters = {
        "transport_type": transport_type,
        "status": status,
        "priority": priority,
        "assigned_to": parse_uuid(assigned_to, "assigned_to") if assigned_to else None,
        "created_by": parse_uuid(created_by, "created_by") if created_by else None,
        "client_id": parse_uuid(client_id, "client_id") if client_id else None,
        "date_range": _range(date_from, date_to),
        "created_range": _day_bounds(created_from, created_to),
    }
    if has_bl:
        filters["has_bl"] = True
    elif no_bl:
        filters["has_bl"] = False

    service = FolderService(db)
    (rows, total), page, limit = service.search(
        scoped_tenant_id,
        filters=filters,
        query=search,
        page=page,
        limit=limit,
        sort_field=sort_by,
        sort_order=sort_order,
    )
    return FolderListResponse(
        data=[FolderResponse.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.post("/folders/search", response_model=FolderSearchResponse)
def search_folders(
    payload: FolderSearchRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("FOLDER_VIEW")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    applied = payload.filters.model_dump(exclude_none=True, by_alias=True)
    filters = dict(applied)
    created = payload.filters.created_range
    if created is not None:
        filters["created_range"] = {"from": created.from_, "to": created.to}

    service = FolderService(db)
    (rows, total), page, limit = service.search(
        scoped_tenant_id,
        filters=filters,
        query=payload.query,
        page=payload.pagination.page,
        limit=payload.pagination.limit,
        sort_field=payload.sort.field,
        sort_order=payload.sort.order,
    )
    return FolderSearchResponse(
        data=[FolderResponse.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
        search_metadata=SearchMetadata(
            total_results=total,
            page_results=len(rows),
            search_query=payload.query,
            filters_applied=len(applied),
        ),
        applied_filters=payload.filters.model_dump(mode="json", exclude_none=True, by_alias=True),
        sort_applied=payload.sort,
    )


@router.get("/folders/stats", response_model=FolderStatsResponse)
def folder_stats(
    stats_type: str = Query("overview", alias="type"),
    transport_type: TransportType | None = None,
    assignee_id: str | None = None,
    period: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("FOLDER_VIEW")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    data = FolderService(db).stats(
        scoped_tenant_id,
        stats_type,
        transport_type=transport_type,
        assignee_id=parse_uuid(assignee_id, "assignee_id") if assignee_id else None,
        period=period,
    )
    return FolderStatsResponse(type=stats_type, data=data, generated_at=datetime.utcnow())


@router.post("/folders", response_model=FolderMutationResponse, status_code=201)
def create_folder(
    request: Request,
    payload: FolderCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("FOLDER_MANAGE")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json")
    )
    if replay:
        return replay.to_response()

    service = FolderService(db, trace_id=trace_id_of(request))
    folder, stages_initialized = service.create(scoped_tenant_id, current_user, payload)
    message = f"Folder {folder.folder_number} created"
    if stages_initialized is False:
        message += "; processing stages could not be initialized"
    response = FolderMutationResponse(
        message=message,
        data=_folder_response(service, folder),
        stages_initialized=stages_initialized,
    )
    if context is not None:
        context.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.get("/folders/{folder_id}", response_model=FolderDetailResponse)
def get_folder(
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("FOLDER_VIEW")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    service = FolderService(db)
    return FolderDetailResponse(data=_folder_response(service, service.get(folder_uuid, scoped_tenant_id)))


@router.put("/folders/{folder_id}", response_model=FolderMutationResponse)
def update_folder(
    request: Request,
    folder_id: str,
    payload: FolderUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("FOLDER_MANAGE")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(
        request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json", exclude_unset=True)
    )
    if replay:
        return replay.to_response()

    service = FolderService(db, trace_id=trace_id_of(request))
    folder = service.update(folder_uuid, scoped_tenant_id, current_user, payload.model_dump(exclude_unset=True))
    response = FolderMutationResponse(message="Folder updated", data=_folder_response(service, folder))
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.delete("/folders/{folder_id}", response_model=FolderDeleteResponse)
def delete_folder(
    request: Request,
    folder_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("FOLDER_MANAGE")),
    db=Depends(get_db),
):
    folder_uuid = parse_uuid(folder_id, "folder_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    folder = FolderService(db, trace_id=trace_id_of(request)).delete(folder_uuid, scoped_tenant_id, current_user)
    return FolderDeleteResponse(
        message=f"Folder {folder.folder_number} deleted",
        data={"id": folder.id, "folder_number": folder.folder_number},
    )
