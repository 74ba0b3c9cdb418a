from sqlalchemy import select

from app.freight.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id: str):
        return self.db.get(User, user_id)

    def get_by_id_in_tenant(self, user_id: str, tenant_id: str):
        stmt = select(User).where(User.id == user_id, User.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().first()

    def list_by_username_or_email(self, identifier: str):
        stmt = select(User).where((User.username == identifier) | (User.email == identifier))
        return self.db.execute(stmt).scalars().all()
