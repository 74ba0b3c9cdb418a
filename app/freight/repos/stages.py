from sqlalchemy import func, select

from app.freight.db.models import DefaultProcessingStage, FolderProcessingStage, StageTransition


class StageRepository:
    def __init__(self, db):
        self.db = db

    def list_for_folder(self, folder_id, tenant_id):
        stmt = (
            select(FolderProcessingStage)
            .where(FolderProcessingStage.folder_id == folder_id, FolderProcessingStage.tenant_id == tenant_id)
            .order_by(FolderProcessingStage.sequence_order)
        )
        return self.db.execute(stmt).scalars().all()

    def count_for_folder(self, folder_id) -> int:
        stmt = select(func.count()).select_from(FolderProcessingStage).where(
            FolderProcessingStage.folder_id == folder_id
        )
        return self.db.execute(stmt).scalar_one()

    def get(self, folder_id, tenant_id, stage: str, *, for_update: bool = False):
        stmt = select(FolderProcessingStage).where(
            FolderProcessingStage.folder_id == folder_id,
            FolderProcessingStage.tenant_id == tenant_id,
            FolderProcessingStage.stage == stage,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def list_active_defaults(self):
        stmt = (
            select(DefaultProcessingStage)
            .where(DefaultProcessingStage.is_active.is_(True))
            .order_by(DefaultProcessingStage.sequence_order)
        )
        return self.db.execute(stmt).scalars().all()

    def add_all(self, stages: list[FolderProcessingStage]) -> list[FolderProcessingStage]:
        self.db.add_all(stages)
        self.db.flush()
        return stages

    def add_transition(self, transition: StageTransition) -> StageTransition:
        self.db.add(transition)
        self.db.flush()
        return transition

    def list_transitions(self, stage_id):
        stmt = (
            select(StageTransition)
            .where(StageTransition.stage_id == stage_id)
            .order_by(StageTransition.created_at, StageTransition.id)
        )
        return self.db.execute(stmt).scalars().all()
