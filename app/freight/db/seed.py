from sqlalchemy import select

from app.freight.core.config import settings
from app.freight.core.security import get_password_hash
from app.freight.db.models import (
    ContainerType,
    DefaultProcessingStage,
    PermissionCatalog,
    RoleTemplate,
    RoleTemplatePermission,
    Tenant,
    User,
)
from app.freight.services.stage_rules import DEFAULT_STAGES


DEFAULT_PERMISSIONS = [
    ("FOLDER_VIEW", "View folders"),
    ("FOLDER_MANAGE", "Create, update and delete folders"),
    ("STAGE_VIEW", "View folder processing stages"),
    ("STAGE_MANAGE", "Drive folder processing stages"),
    ("CLIENT_VIEW", "View clients"),
    ("CLIENT_MANAGE", "Create, update and delete clients"),
    ("CONTAINER_VIEW", "View bills of lading and containers"),
    ("CONTAINER_MANAGE", "Manage bills of lading and container arrivals"),
    ("AUDIT_VIEW", "View audit events"),
]

_ALL_PERMISSIONS = [code for code, _ in DEFAULT_PERMISSIONS]

DEFAULT_ROLE_TEMPLATES = {
    "SUPERADMIN": _ALL_PERMISSIONS,
    "ADMIN": _ALL_PERMISSIONS,
    "MANAGER": [code for code in _ALL_PERMISSIONS if code != "AUDIT_VIEW"],
    "USER": [
        "FOLDER_VIEW",
        "FOLDER_MANAGE",
        "STAGE_VIEW",
        "STAGE_MANAGE",
        "CLIENT_VIEW",
        "CONTAINER_VIEW",
        "CONTAINER_MANAGE",
    ],
    "VIEWER": ["FOLDER_VIEW", "STAGE_VIEW", "CLIENT_VIEW", "CONTAINER_VIEW"],
}

DEFAULT_CONTAINER_TYPES = [
    ("22G1", "20' general purpose", 20, 1.0),
    ("42G1", "40' general purpose", 40, 2.0),
    ("45G1", "40' high cube", 40, 2.0),
    ("L5G1", "45' high cube", 45, 2.25),
    ("22R1", "20' reefer", 20, 1.0),
    ("45R1", "40' reefer high cube", 40, 2.0),
]


def _get_or_create_tenant(db):
    tenant = db.execute(select(Tenant).where(Tenant.name == settings.DEFAULT_TENANT_NAME)).scalars().first()
    if tenant:
        return tenant
    tenant = Tenant(name=settings.DEFAULT_TENANT_NAME)
    db.add(tenant)
    db.flush()
    return tenant


def _get_or_create_permissions(db):
    existing = {perm.code for perm in db.execute(select(PermissionCatalog)).scalars().all()}
    for code, description in DEFAULT_PERMISSIONS:
        if code not in existing:
            db.add(PermissionCatalog(code=code, description=description))


def _get_or_create_role_templates(db):
    existing = {
        role.name
        for role in db.execute(select(RoleTemplate).where(RoleTemplate.tenant_id.is_(None))).scalars().all()
    }
    for name in DEFAULT_ROLE_TEMPLATES:
        if name not in existing:
            db.add(RoleTemplate(name=name, description=f"System role: {name}", is_system=True))


def _assign_role_permissions(db):
    permissions = {perm.code: perm for perm in db.execute(select(PermissionCatalog)).scalars().all()}
    roles = {
        role.name: role
        for role in db.execute(select(RoleTemplate).where(RoleTemplate.tenant_id.is_(None))).scalars().all()
    }
    existing_pairs = {
        (rtp.role_template_id, rtp.permission_id)
        for rtp in db.execute(select(RoleTemplatePermission)).scalars().all()
    }
    for role_name, permission_codes in DEFAULT_ROLE_TEMPLATES.items():
        role = roles.get(role_name)
        if not role:
            continue
        for code in permission_codes:
            permission = permissions.get(code)
            if not permission or (role.id, permission.id) in existing_pairs:
                continue
            db.add(RoleTemplatePermission(role_template_id=role.id, permission_id=permission.id))


def _get_or_create_default_stages(db):
    existing = {row.stage for row in db.execute(select(DefaultProcessingStage)).scalars().all()}
    for default in DEFAULT_STAGES:
        if default.stage in existing:
            continue
        db.add(
            DefaultProcessingStage(
                stage=default.stage,
                sequence_order=default.sequence_order,
                display_name=default.display_name,
                description=default.description,
                default_priority=default.default_priority,
                is_mandatory=default.is_mandatory,
                can_be_skipped=default.can_be_skipped,
                default_duration_hours=default.default_duration_hours,
                requires_documents=list(default.requires_documents),
                is_active=True,
            )
        )


def _get_or_create_container_types(db):
    existing = {row.iso_code for row in db.execute(select(ContainerType)).scalars().all()}
    for iso_code, description, size_feet, teu in DEFAULT_CONTAINER_TYPES:
        if iso_code not in existing:
            db.add(ContainerType(iso_code=iso_code, description=description, size_feet=size_feet, teu=teu))


def _get_or_create_superadmin(db, tenant):
    user = (
        db.execute(select(User).where(User.username == settings.SUPERADMIN_USERNAME, User.tenant_id == tenant.id))
        .scalars()
        .first()
    )
    if user:
        return user
    user = User(
        tenant_id=tenant.id,
        username=settings.SUPERADMIN_USERNAME,
        email=settings.SUPERADMIN_EMAIL,
        hashed_password=get_password_hash(settings.SUPERADMIN_PASSWORD),
        role="SUPERADMIN",
        status="active",
        is_active=True,
    )
    db.add(user)
    return user


def run_seed(db):
    tenant = _get_or_create_tenant(db)
    _get_or_create_permissions(db)
    _get_or_create_role_templates(db)
    db.flush()
    _assign_role_permissions(db)
    _get_or_create_default_stages(db)
    _get_or_create_container_types(db)
    _get_or_create_superadmin(db, tenant)
    db.commit()


if __name__ == "__main__":
    from app.freight.db.session import SessionLocal

    session = SessionLocal()
    try:
        run_seed(session)
    finally:
        session.close()
