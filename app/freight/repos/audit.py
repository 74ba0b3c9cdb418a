from sqlalchemy import func, select

from app.freight.db.models import AuditEvent


class AuditRepository:
    def __init__(self, db):
        self.db = db

    def create(self, event: AuditEvent) -> AuditEvent:
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_events(
        self,
        tenant_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ):
        filters = [AuditEvent.tenant_id == tenant_id]
        if entity_type:
            filters.append(AuditEvent.entity_type == entity_type)
        if entity_id:
            filters.append(AuditEvent.entity_id == entity_id)
        if action:
            filters.append(AuditEvent.action == action)
        stmt = (
            select(AuditEvent)
            .where(*filters)
            .order_by(AuditEvent.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        total = self.db.execute(select(func.count()).select_from(AuditEvent).where(*filters)).scalar_one()
        return self.db.execute(stmt).scalars().all(), total
