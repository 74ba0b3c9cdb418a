from sqlalchemy import func, select

from app.freight.db.models import BillOfLading, Container, ContainerType


class BillOfLadingRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, bl_id, tenant_id):
        stmt = select(BillOfLading).where(
            BillOfLading.id == bl_id,
            BillOfLading.tenant_id == tenant_id,
            BillOfLading.deleted_at.is_(None),
        )
        return self.db.execute(stmt).scalars().first()

    def get_by_number(self, bl_number: str, tenant_id):
        stmt = select(BillOfLading).where(BillOfLading.bl_number == bl_number, BillOfLading.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().first()

    def add(self, bill: BillOfLading) -> BillOfLading:
        self.db.add(bill)
        self.db.flush()
        return bill

    def list_by_tenant(self, tenant_id, *, status: str | None = None, limit: int = 50, offset: int = 0):
        conditions = [BillOfLading.tenant_id == tenant_id, BillOfLading.deleted_at.is_(None)]
        if status:
            conditions.append(BillOfLading.status == status)
        stmt = (
            select(BillOfLading)
            .where(*conditions)
            .order_by(BillOfLading.created_at.desc(), BillOfLading.id)
            .offset(offset)
            .limit(limit)
        )
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(select(func.count()).select_from(BillOfLading).where(*conditions)).scalar_one()
        return rows, total


class ContainerRepository:
    def __init__(self, db):
        self.db = db

    def list_for_bill(self, bl_id, tenant_id):
        stmt = (
            select(Container)
            .where(Container.bl_id == bl_id, Container.tenant_id == tenant_id)
            .order_by(Container.container_number)
        )
        return self.db.execute(stmt).scalars().all()

    def get_in_bill(self, container_id, bl_id, tenant_id, *, for_update: bool = False):
        stmt = select(Container).where(
            Container.id == container_id,
            Container.bl_id == bl_id,
            Container.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def add(self, container: Container) -> Container:
        self.db.add(container)
        self.db.flush()
        return container

    def get_type_by_code(self, iso_code: str):
        stmt = select(ContainerType).where(ContainerType.iso_code == iso_code)
        return self.db.execute(stmt).scalars().first()
