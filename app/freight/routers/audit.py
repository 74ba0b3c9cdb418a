from fastapi import APIRouter, Depends, Query

from app.freight.core.deps import get_current_token_data, require_permission
from app.freight.core.scope import resolve_tenant_id
from app.freight.db.session import get_db
from app.freight.repos.audit import AuditRepository
from app.freight.schemas.audit import AuditEventListResponse, AuditEventResponse
from app.freight.schemas.common import Pagination

router = APIRouter()


@router.get("/audit-events", response_model=AuditEventListResponse)
def list_audit_events(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _permission=Depends(require_permission("AUDIT_VIEW")),
    db=Depends(get_db),
):
    rows, total = AuditRepository(db).list_events(
        resolve_tenant_id(token_data, tenant_id),
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return AuditEventListResponse(
        data=[AuditEventResponse.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )
