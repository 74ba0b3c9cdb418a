import re
from datetime import date, datetime

from sqlalchemy import func, or_, select

from app.freight.db.models import Folder, FolderCounter, FolderProcessingStage


FOLDER_NUMBER_PATTERN = re.compile(r"^[MTA]\d{6}-\d{6}$")

SORT_FIELDS = {
    "created_at": Folder.created_at,
    "updated_at": Folder.updated_at,
    "folder_date": Folder.folder_date,
    "expected_delivery_date": Folder.expected_delivery_date,
    "actual_delivery_date": Folder.actual_delivery_date,
    "folder_number": Folder.folder_number,
    "title": Folder.title,
    "priority": Folder.priority,
    "status": Folder.status,
}

_LIST_FILTERS = {
    "transport_type": Folder.transport_type,
    "status": Folder.status,
    "priority": Folder.priority,
    "assigned_to": Folder.assigned_to,
    "created_by": Folder.created_by,
    "client_id": Folder.client_id,
}

_RANGE_FILTERS = {
    "date_range": Folder.folder_date,
    "created_range": Folder.created_at,
    "expected_delivery_range": Folder.expected_delivery_date,
}


class FolderRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, folder_id, tenant_id, *, for_update: bool = False):
        stmt = select(Folder).where(
            Folder.id == folder_id,
            Folder.tenant_id == tenant_id,
            Folder.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def add(self, folder: Folder) -> Folder:
        self.db.add(folder)
        self.db.flush()
        return folder

    def next_sequence(self, tenant_id, transport_type: str, counter_date: date) -> int:
        stmt = (
            select(FolderCounter)
            .where(
                FolderCounter.tenant_id == tenant_id,
                FolderCounter.transport_type == transport_type,
                FolderCounter.counter_date == counter_date,
            )
            .with_for_update()
        )
        counter = self.db.execute(stmt).scalars().first()
        if counter is None:
            counter = FolderCounter(
                tenant_id=tenant_id,
                transport_type=transport_type,
                counter_date=counter_date,
                last_value=0,
            )
            self.db.add(counter)
        counter.last_value += 1
        self.db.flush()
        return counter.last_value

    def search(
        self,
        tenant_id,
        *,
        filters: dict | None = None,
        query: str | None = None,
        sort_field: str = "created_at",
        sort_order: str = "desc",
        limit: int = 20,
        offset: int = 0,
    ):
        filters = filters or {}
        conditions = [Folder.tenant_id == tenant_id, Folder.deleted_at.is_(None)]

        for key, column in _LIST_FILTERS.items():
            value = filters.get(key)
            if value is None or value == []:
                continue
            if isinstance(value, (list, tuple, set)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)

        for key, column in _RANGE_FILTERS.items():
            bounds = filters.get(key) or {}
            if bounds.get("from") is not None:
                conditions.append(column >= bounds["from"])
            if bounds.get("to") is not None:
                conditions.append(column <= bounds["to"])

        has_bl = filters.get("has_bl")
        if has_bl is True:
            conditions.append(Folder.bl_id.is_not(None))
        elif has_bl is False:
            conditions.append(Folder.bl_id.is_(None))

        if filters.get("is_delayed") is True:
            conditions.append(Folder.expected_delivery_date < date.today())
            conditions.append(Folder.status.not_in(["completed", "cancelled"]))

        if filters.get("is_urgent") is True:
            conditions.append(Folder.priority.in_(["urgent", "critical"]))

        if query and query.strip():
            term = query.strip()
            if FOLDER_NUMBER_PATTERN.match(term):
                conditions.append(Folder.folder_number == term)
            else:
                pattern = f"%{term}%"
                conditions.append(
                    or_(
                        Folder.title.ilike(pattern),
                        Folder.description.ilike(pattern),
                        Folder.client_reference.ilike(pattern),
                        Folder.folder_number.ilike(pattern),
                        Folder.internal_notes.ilike(pattern),
                    )
                )

        sort_column = SORT_FIELDS.get(sort_field, Folder.created_at)
        order = sort_column.asc() if sort_order == "asc" else sort_column.desc()
        stmt = select(Folder).where(*conditions).order_by(order, Folder.id).offset(offset).limit(limit)
        count_stmt = select(func.count()).select_from(Folder).where(*conditions)

        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def soft_delete(self, folder: Folder, user_id) -> Folder:
        folder.deleted_at = datetime.utcnow()
        folder.deleted_by = user_id
        folder.updated_at = folder.deleted_at
        self.db.flush()
        return folder

    def count_by(self, tenant_id, column_name: str, *, transport_type: str | None = None):
        column = getattr(Folder, column_name)
        conditions = [Folder.tenant_id == tenant_id, Folder.deleted_at.is_(None)]
        if transport_type:
            conditions.append(Folder.transport_type == transport_type)
        stmt = select(column, func.count()).where(*conditions).group_by(column)
        return {key: count for key, count in self.db.execute(stmt).all()}

    def count_by_transport_and_status(self, tenant_id, *, transport_type: str | None = None):
        conditions = [Folder.tenant_id == tenant_id, Folder.deleted_at.is_(None)]
        if transport_type:
            conditions.append(Folder.transport_type == transport_type)
        stmt = (
            select(Folder.transport_type, Folder.status, func.count())
            .where(*conditions)
            .group_by(Folder.transport_type, Folder.status)
        )
        return self.db.execute(stmt).all()

    def count_by_assignee_and_status(self, tenant_id, *, assignee_id=None):
        conditions = [Folder.tenant_id == tenant_id, Folder.deleted_at.is_(None)]
        if assignee_id is not None:
            conditions.append(Folder.assigned_to == assignee_id)
        stmt = (
            select(Folder.assigned_to, Folder.status, func.count())
            .where(*conditions)
            .group_by(Folder.assigned_to, Folder.status)
        )
        return self.db.execute(stmt).all()

    def count_stages_by_status(self, tenant_id):
        stmt = (
            select(FolderProcessingStage.stage, FolderProcessingStage.status, func.count())
            .join(Folder, Folder.id == FolderProcessingStage.folder_id)
            .where(FolderProcessingStage.tenant_id == tenant_id, Folder.deleted_at.is_(None))
            .group_by(FolderProcessingStage.stage, FolderProcessingStage.status)
        )
        return self.db.execute(stmt).all()

    def list_active_stages(self, tenant_id):
        stmt = (
            select(FolderProcessingStage)
            .join(Folder, Folder.id == FolderProcessingStage.folder_id)
            .where(FolderProcessingStage.tenant_id == tenant_id, Folder.deleted_at.is_(None))
            .order_by(FolderProcessingStage.folder_id, FolderProcessingStage.sequence_order)
        )
        return self.db.execute(stmt).scalars().all()

    def list_for_tenant(self, tenant_id):
        stmt = (
            select(Folder)
            .where(Folder.tenant_id == tenant_id, Folder.deleted_at.is_(None))
            .order_by(Folder.folder_number)
        )
        return self.db.execute(stmt).scalars().all()

    def list_for_client(self, tenant_id, client_id):
        stmt = (
            select(Folder)
            .where(Folder.tenant_id == tenant_id, Folder.client_id == client_id, Folder.deleted_at.is_(None))
            .order_by(Folder.folder_date.desc())
        )
        return self.db.execute(stmt).scalars().all()

    def client_ids_with_open_folders(self, tenant_id, client_ids, closed_statuses) -> set:
        stmt = (
            select(Folder.client_id)
            .where(
                Folder.tenant_id == tenant_id,
                Folder.client_id.in_(client_ids),
                Folder.status.not_in(closed_statuses),
                Folder.deleted_at.is_(None),
            )
            .distinct()
        )
        return set(self.db.execute(stmt).scalars().all())
