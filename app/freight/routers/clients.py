from fastapi import APIRouter, Depends, Header, Query, Request, Response

from app.freight.core.config import settings
from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.core.deps import get_current_token_data, require_active_user, require_permission
from app.freight.core.scope import resolve_tenant_id
from app.freight.db.session import get_db
from app.freight.routers.common import begin_idempotent, parse_uuid, trace_id_of
from app.freight.schemas.clients import (
    ClientBatchRequest,
    ClientBatchResponse,
    ClientCreateRequest,
    ClientListResponse,
    ClientMutationResponse,
    ClientResponse,
    ClientStatisticsResponse,
    ClientStatsResponse,
    ClientStatus,
    ClientType,
    ClientUpdateRequest,
    ClientValidationRequest,
    ClientValidationResponse,
    ContactCreateRequest,
    ContactDeleteResponse,
    ContactListResponse,
    ContactMutationResponse,
    ContactResponse,
    ContactUpdateRequest,
)
from app.freight.schemas.common import Pagination
from app.freight.services.client_batch import ClientBatchService
from app.freight.services.client_contacts import ClientContactService
from app.freight.services.clients import ClientService, parse_if_match

router = APIRouter()


@router.get("/clients", response_model=ClientListResponse)
def list_clients(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.CLIENTS_DEFAULT_PAGE_SIZE, ge=1),
    client_type: ClientType | None = None,
    status: ClientStatus | None = None,
    search: str | None = None,
    sort_by: str = Query("created_at", pattern="^(created_at|updated_at|company_name|last_name|email|status)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_VIEW")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    rows, total, page, limit = ClientService(db).list_clients(
        scoped_tenant_id,
        page=page,
        limit=limit,
        client_type=client_type,
        status=status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ClientListResponse(
        data=[ClientResponse.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/clients/stats", response_model=ClientStatsResponse)
def client_stats(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_VIEW")),
    db=Depends(get_db),
):
    return ClientStatsResponse(**ClientService(db).stats(resolve_tenant_id(token_data, tenant_id)))


@router.post("/clients", response_model=ClientMutationResponse, status_code=201)
def create_client(
    request: Request,
    payload: ClientCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    context, replay = begin_idempotent(request, db, tenant_id=scoped_tenant_id, payload=payload.model_dump(mode="json"))
    if replay:
        return replay.to_response()
    client = ClientService(db, trace_id=trace_id_of(request)).create(scoped_tenant_id, current_user, payload)
    response = ClientMutationResponse(message="Client created", data=ClientResponse.model_validate(client))
    if context is not None:
        context.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.post("/clients/batch", response_model=ClientBatchResponse)
def batch_clients(
    request: Request,
    response: Response,
    payload: ClientBatchRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    result = ClientBatchResponse(
        **ClientBatchService(db, trace_id=trace_id_of(request)).run(scoped_tenant_id, current_user, payload)
    )
    if result.success_count == 0:
        raise AppError(ErrorCatalog.BATCH_OPERATION_FAILED, details=result.model_dump(mode="json"))
    if result.error_count:
        response.status_code = 207
    return result


@router.post("/clients/validate", response_model=ClientValidationResponse)
def validate_client(
    payload: ClientValidationRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    result = ClientValidationResponse(
        **ClientService(db).validate(
            resolve_tenant_id(token_data, tenant_id),
            payload.operation_type,
            payload.data,
            payload.options,
            client_id=payload.client_id,
        )
    )
    if not result.is_valid:
        raise AppError(ErrorCatalog.CLIENT_VALIDATION_FAILED, details=result.model_dump(mode="json"))
    return result


@router.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_VIEW")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    return ClientResponse.model_validate(ClientService(db).get(client_uuid, resolve_tenant_id(token_data, tenant_id)))


@router.put("/clients/{client_id}", response_model=ClientMutationResponse)
def update_client(
    request: Request,
    client_id: str,
    payload: ClientUpdateRequest,
    if_match: str | None = Header(default=None, alias="If-Match"),
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    client = ClientService(db, trace_id=trace_id_of(request)).update(
        client_uuid,
        scoped_tenant_id,
        current_user,
        payload.model_dump(exclude_unset=True),
        expected_version=parse_if_match(if_match),
    )
    return ClientMutationResponse(message="Client updated", data=ClientResponse.model_validate(client))


@router.delete("/clients/{client_id}", response_model=ClientMutationResponse)
def delete_client(
    request: Request,
    client_id: str,
    if_match: str | None = Header(default=None, alias="If-Match"),
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    client = ClientService(db, trace_id=trace_id_of(request)).delete(
        client_uuid, scoped_tenant_id, current_user, expected_version=parse_if_match(if_match)
    )
    return ClientMutationResponse(message="Client deleted", data=ClientResponse.model_validate(client))


@router.get("/clients/{client_id}/statistics", response_model=ClientStatisticsResponse)
def client_statistics(
    client_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_VIEW")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    return ClientStatisticsResponse(
        **ClientService(db).statistics(client_uuid, resolve_tenant_id(token_data, tenant_id))
    )


@router.get("/clients/{client_id}/contacts", response_model=ContactListResponse)
def list_contacts(
    client_id: str,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("CLIENT_VIEW")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    contacts = ClientContactService(db).list_contacts(client_uuid, resolve_tenant_id(token_data, tenant_id))
    return ContactListResponse(
        client_id=client_uuid,
        data=[ContactResponse.model_validate(contact) for contact in contacts],
    )


@router.post("/clients/{client_id}/contacts", response_model=ContactMutationResponse, status_code=201)
def add_contact(
    request: Request,
    client_id: str,
    payload: ContactCreateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    client, contact = ClientContactService(db, trace_id=trace_id_of(request)).add(
        client_uuid, scoped_tenant_id, current_user, payload
    )
    return ContactMutationResponse(
        message="Contact added",
        client=ClientResponse.model_validate(client),
        contact=ContactResponse.model_validate(contact),
    )


@router.put("/clients/{client_id}/contacts/{contact_id}", response_model=ContactMutationResponse)
def update_contact(
    request: Request,
    client_id: str,
    contact_id: str,
    payload: ContactUpdateRequest,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    contact_uuid = parse_uuid(contact_id, "contact_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    client, contact = ClientContactService(db, trace_id=trace_id_of(request)).update(
        client_uuid, contact_uuid, scoped_tenant_id, current_user, payload.model_dump(exclude_unset=True)
    )
    return ContactMutationResponse(
        message="Contact updated",
        client=ClientResponse.model_validate(client),
        contact=ContactResponse.model_validate(contact),
    )


@router.delete("/clients/{client_id}/contacts/{contact_id}", response_model=ContactDeleteResponse)
def delete_contact(
    request: Request,
    client_id: str,
    contact_id: str,
    deactivate_only: bool = False,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    current_user=Depends(require_active_user),
    _permission=Depends(require_permission("CLIENT_MANAGE")),
    db=Depends(get_db),
):
    client_uuid = parse_uuid(client_id, "client_id")
    contact_uuid = parse_uuid(contact_id, "contact_id")
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    action, remaining = ClientContactService(db, trace_id=trace_id_of(request)).remove(
        client_uuid, contact_uuid, scoped_tenant_id, current_user, deactivate_only=deactivate_only
    )
    return ContactDeleteResponse(action=action, contact_id=contact_uuid, remaining_contacts=remaining)
