from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.core.security import TokenData


SUPERADMIN_ROLES = {"SUPERADMIN"}
TENANT_ADMIN_ROLES = {"SUPERADMIN", "ADMIN", "MANAGER"}


def _normalize_role(role: str | None) -> str:
    return (role or "").upper()


def is_superadmin(role: str | None) -> bool:
    return _normalize_role(role) in SUPERADMIN_ROLES


def is_tenant_admin(role: str | None) -> bool:
    return _normalize_role(role) in TENANT_ADMIN_ROLES


def enforce_tenant_scope(
    token_data: TokenData,
    tenant_id: str | None,
    *,
    allow_superadmin: bool = False,
) -> None:
    if not tenant_id or not token_data.tenant_id:
        raise AppError(ErrorCatalog.TENANT_SCOPE_REQUIRED)
    if token_data.tenant_id != tenant_id:
        if allow_superadmin and is_superadmin(token_data.role):
            return
        raise AppError(ErrorCatalog.CROSS_TENANT_ACCESS_DENIED)


def resolve_tenant_id(token_data: TokenData, tenant_id: str | None) -> str:
    """Tenant addressed by a request: the caller's own unless a superadmin names another."""
    if tenant_id is None:
        return token_data.tenant_id
    enforce_tenant_scope(token_data, tenant_id, allow_superadmin=True)
    return tenant_id
