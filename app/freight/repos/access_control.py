from sqlalchemy import select

from app.freight.db.models import TenantRolePolicy, UserPermissionOverride


class AccessControlPolicyRepository:
    def __init__(self, db):
        self.db = db

    def list_tenant_role_policies(self, *, tenant_id: str | None, role_name: str):
        stmt = select(TenantRolePolicy).where(TenantRolePolicy.role_name == role_name)
        if tenant_id is None:
            stmt = stmt.where(TenantRolePolicy.tenant_id.is_(None))
        else:
            stmt = stmt.where(TenantRolePolicy.tenant_id == tenant_id)
        return self.db.execute(stmt).scalars().all()

    def list_user_overrides(self, *, tenant_id: str, user_id: str):
        stmt = select(UserPermissionOverride).where(
            UserPermissionOverride.tenant_id == tenant_id,
            UserPermissionOverride.user_id == user_id,
        )
        return self.db.execute(stmt).scalars().all()
