from __future__ import annotations

from dataclasses import dataclass

from app.freight.core.context import RequestContext
from app.freight.core.security import TokenData
from app.freight.repos.access_control import AccessControlPolicyRepository
from app.freight.repos.rbac import RoleTemplateRepository


@dataclass(frozen=True)
class PermissionDecision:
    key: str
    allowed: bool
    source: str


def _split_effects(entries) -> tuple[set[str], set[str]]:
    allow: set[str] = set()
    deny: set[str] = set()
    for entry in entries:
        if (entry.effect or "").lower() == "deny":
            deny.add(entry.permission_code)
        else:
            allow.add(entry.permission_code)
    return allow, deny


class AccessControlService:
    """Resolves a permission key for the caller.

    Order, with DENY winning at every level: user override, tenant role
    policy, role template, default deny. Keys missing from the catalog are
    always denied.
    """

    def __init__(self, db, cache: dict | None = None):
        self.repo = RoleTemplateRepository(db)
        self.policy_repo = AccessControlPolicyRepository(db)
        self.cache = cache if cache is not None else {}

    def evaluate_permission(
        self,
        permission_key: str,
        context: RequestContext,
        token_data: TokenData | None = None,
    ) -> PermissionDecision:
        key = permission_key.strip()
        if key not in self._get_catalog_permissions():
            return PermissionDecision(key=key, allowed=False, source="unknown_permission")

        role_name, tenant_id = self._resolve_role_scope(context, token_data)
        if not role_name:
            return PermissionDecision(key=key, allowed=False, source="default_deny")

        user_allow, user_deny = self._get_user_overrides(tenant_id, context.user_id)
        tenant_allow, tenant_deny = self._get_tenant_role_policy(tenant_id, role_name)

        if key in user_deny:
            return PermissionDecision(key=key, allowed=False, source="user_override_deny")
        if key in tenant_deny:
            return PermissionDecision(key=key, allowed=False, source="tenant_policy_deny")
        if key in user_allow:
            return PermissionDecision(key=key, allowed=True, source="user_override_allow")
        if key in tenant_allow:
            return PermissionDecision(key=key, allowed=True, source="tenant_policy_allow")
        if key in self._get_allowed_permissions(role_name, tenant_id):
            return PermissionDecision(key=key, allowed=True, source="role_template")
        return PermissionDecision(key=key, allowed=False, source="default_deny")

    def _get_catalog_permissions(self) -> set[str]:
        if "catalog_permissions" not in self.cache:
            self.cache["catalog_permissions"] = {perm.code for perm in self.repo.list_permission_catalog()}
        return self.cache["catalog_permissions"]

    def _get_allowed_permissions(self, role_name: str, tenant_id: str | None) -> set[str]:
        cache_key = f"role_permissions:{tenant_id}:{role_name}"
        if cache_key in self.cache:
            return self.cache[cache_key]
        permissions = set(self.repo.list_permissions_for_role(role_name, tenant_id))
        if not permissions and tenant_id is not None:
            permissions = set(self.repo.list_permissions_for_role(role_name, None))
        self.cache[cache_key] = permissions
        return permissions

    def _get_tenant_role_policy(self, tenant_id: str | None, role_name: str) -> tuple[set[str], set[str]]:
        cache_key = f"tenant_policy:{tenant_id}:{role_name}"
        if cache_key not in self.cache:
            entries = self.policy_repo.list_tenant_role_policies(tenant_id=tenant_id, role_name=role_name)
            self.cache[cache_key] = _split_effects(entries)
        return self.cache[cache_key]

    def _get_user_overrides(self, tenant_id: str | None, user_id: str | None) -> tuple[set[str], set[str]]:
        if not tenant_id or not user_id:
            return set(), set()
        cache_key = f"user_overrides:{tenant_id}:{user_id}"
        if cache_key not in self.cache:
            entries = self.policy_repo.list_user_overrides(tenant_id=tenant_id, user_id=user_id)
            self.cache[cache_key] = _split_effects(entries)
        return self.cache[cache_key]

    @staticmethod
    def _resolve_role_scope(
        context: RequestContext,
        token_data: TokenData | None,
    ) -> tuple[str | None, str | None]:
        role = (context.role or (token_data.role if token_data else "")).upper() or None
        tenant_id = context.tenant_id or (token_data.tenant_id if token_data else None)
        return role, tenant_id
