import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from app.freight.db.models import AuditEvent
from app.freight.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    tenant_id: str
    user_id: str | None
    trace_id: str | None
    actor: str
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None = None
    after: dict | None = None
    metadata: dict | None = None
    result: str = "success"


class AuditService:
    """Best-effort audit logging.

    Failures are logged and rolled back so the request flow carries on.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            event = AuditEvent(
                tenant_id=payload.tenant_id,
                user_id=payload.user_id,
                trace_id=payload.trace_id,
                actor=payload.actor,
                action=payload.action,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                before_payload=payload.before,
                after_payload=payload.after,
                event_metadata=payload.metadata,
                result=payload.result,
                created_at=datetime.utcnow(),
            )
            self.repo.create(event)
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "tenant_id": payload.tenant_id,
                    "entity_id": payload.entity_id,
                },
            )


def audit_snapshot(row, fields) -> dict:
    """JSON-ready copy of selected attributes of a model row."""
    snapshot = {}
    for name in fields:
        value = getattr(row, name, None)
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        snapshot[name] = value
    return snapshot
