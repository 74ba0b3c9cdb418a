from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.freight.schemas.common import Pagination


class AuditEventResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    user_id: UUID | None
    trace_id: str | None
    actor: str
    action: str
    entity_type: str
    entity_id: str | None
    before_payload: dict | None
    after_payload: dict | None
    event_metadata: dict | None
    result: str
    created_at: datetime


class AuditEventListResponse(BaseModel):
    data: list[AuditEventResponse]
    pagination: Pagination
