import uuid

import pytest

from app.freight.core.context import RequestContext
from app.freight.core.scope import is_superadmin, is_tenant_admin
from app.freight.db.models import TenantRolePolicy, UserPermissionOverride
from app.freight.db.seed import DEFAULT_ROLE_TEMPLATES, run_seed
from app.freight.services.access_control import AccessControlService
from tests.freight_helpers import auth, create_folder, create_tenant_user, setup_tenant


def _context(user, role: str | None = None) -> RequestContext:
    return RequestContext(
        user_id=str(user.id),
        tenant_id=str(user.tenant_id),
        username=user.username,
        role=role or user.role,
        trace_id="",
    )


@pytest.mark.parametrize("role_name", ["SUPERADMIN", "ADMIN", "MANAGER", "USER", "VIEWER"])
def test_role_templates_drive_decisions(db_session, role_name):
    run_seed(db_session)
    _, user = create_tenant_user(db_session, suffix=role_name, role=role_name)
    service = AccessControlService(db_session)

    allowed = set(DEFAULT_ROLE_TEMPLATES[role_name])
    for key in DEFAULT_ROLE_TEMPLATES["SUPERADMIN"]:
        decision = service.evaluate_permission(key, _context(user))
        if key in allowed:
            assert decision.allowed is True
            assert decision.source == "role_template"
        else:
            assert decision.allowed is False
            assert decision.source == "default_deny"


def test_unknown_permission_denied(db_session):
    run_seed(db_session)
    _, user = create_tenant_user(db_session, suffix="Unknown", role="ADMIN")

    decision = AccessControlService(db_session).evaluate_permission("INVOICE_MANAGE", _context(user))

    assert decision.allowed is False
    assert decision.source == "unknown_permission"


def test_missing_role_is_default_deny(db_session):
    run_seed(db_session)
    context = RequestContext(user_id=None, tenant_id=None, username=None, role=None, trace_id="")

    decision = AccessControlService(db_session).evaluate_permission("FOLDER_VIEW", context)

    assert decision.allowed is False
    assert decision.source == "default_deny"


def test_tenant_policy_can_grant_and_deny(db_session):
    run_seed(db_session)
    tenant, user = create_tenant_user(db_session, suffix="Policy", role="VIEWER")
    db_session.add_all(
        [
            TenantRolePolicy(tenant_id=tenant.id, role_name="VIEWER", permission_code="FOLDER_MANAGE", effect="allow"),
            TenantRolePolicy(tenant_id=tenant.id, role_name="VIEWER", permission_code="CLIENT_VIEW", effect="deny"),
        ]
    )
    db_session.commit()
    service = AccessControlService(db_session)

    granted = service.evaluate_permission("FOLDER_MANAGE", _context(user))
    denied = service.evaluate_permission("CLIENT_VIEW", _context(user))

    assert (granted.allowed, granted.source) == (True, "tenant_policy_allow")
    assert (denied.allowed, denied.source) == (False, "tenant_policy_deny")


def test_deny_wins_over_allow_at_every_level(db_session):
    run_seed(db_session)
    tenant, user = create_tenant_user(db_session, suffix="DenyWins", role="USER")
    db_session.add_all(
        [
            UserPermissionOverride(
                tenant_id=tenant.id, user_id=user.id, permission_code="CLIENT_MANAGE", effect="allow"
            ),
            TenantRolePolicy(tenant_id=tenant.id, role_name="USER", permission_code="CLIENT_MANAGE", effect="deny"),
            UserPermissionOverride(tenant_id=tenant.id, user_id=user.id, permission_code="FOLDER_VIEW", effect="deny"),
        ]
    )
    db_session.commit()
    service = AccessControlService(db_session)

    client_manage = service.evaluate_permission("CLIENT_MANAGE", _context(user))
    folder_view = service.evaluate_permission("FOLDER_VIEW", _context(user))

    assert (client_manage.allowed, client_manage.source) == (False, "tenant_policy_deny")
    assert (folder_view.allowed, folder_view.source) == (False, "user_override_deny")


def test_policies_do_not_leak_across_tenants(db_session):
    run_seed(db_session)
    tenant_a, _ = create_tenant_user(db_session, suffix="LeakA", role="VIEWER")
    _, user_b = create_tenant_user(db_session, suffix="LeakB", role="VIEWER")
    db_session.add(
        TenantRolePolicy(tenant_id=tenant_a.id, role_name="VIEWER", permission_code="FOLDER_MANAGE", effect="allow")
    )
    db_session.commit()

    decision = AccessControlService(db_session).evaluate_permission("FOLDER_MANAGE", _context(user_b))

    assert decision.allowed is False


def test_decisions_are_cached_per_request(db_session):
    run_seed(db_session)
    _, user = create_tenant_user(db_session, suffix="Cache", role="USER")
    cache: dict = {}
    service = AccessControlService(db_session, cache=cache)

    service.evaluate_permission("FOLDER_VIEW", _context(user))

    assert "catalog_permissions" in cache
    assert f"role_permissions:{user.tenant_id}:USER" in cache


def test_role_name_is_case_insensitive(db_session):
    run_seed(db_session)
    _, user = create_tenant_user(db_session, suffix="Case", role="USER")

    decision = AccessControlService(db_session).evaluate_permission("FOLDER_VIEW", _context(user, role="user"))

    assert decision.allowed is True


def test_user_without_overrides_falls_back_to_role_template(db_session):
    run_seed(db_session)
    _, user = create_tenant_user(db_session, suffix="Ghost", role="VIEWER")
    context = RequestContext(
        user_id=str(uuid.uuid4()), tenant_id=str(user.tenant_id), username="ghost", role="VIEWER", trace_id=""
    )

    decision = AccessControlService(db_session).evaluate_permission("FOLDER_VIEW", context)

    assert (decision.allowed, decision.source) == (True, "role_template")


def test_viewer_can_read_but_not_write(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ApiViewer", role="VIEWER")

    assert client.get("/api/folders", headers=auth(token)).status_code == 200
    assert client.get("/api/clients", headers=auth(token)).status_code == 200

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "M", "title": "Blocked", "folder_date": "2025-08-04"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_user_role_cannot_manage_clients_or_read_audit(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ApiUser", role="USER")

    create = client.post(
        "/api/clients",
        headers=auth(token),
        json={"client_type": "individual", "first_name": "Ana", "last_name": "Diaz", "email": "ana@example.com"},
    )
    audit = client.get("/api/audit-events", headers=auth(token))

    assert create.status_code == 403
    assert audit.status_code == 403
    assert audit.json()["details"] == {"permission": "AUDIT_VIEW"}


def test_admin_lists_audit_events_for_own_tenant(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ApiAuditA")
    folder = create_folder(client, token)
    _, _, other_token = setup_tenant(client, db_session, suffix="ApiAuditB")
    create_folder(client, other_token)

    response = client.get(
        "/api/audit-events",
        headers=auth(token),
        params={"entity_type": "folder", "action": "folder.create"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["entity_id"] == folder["id"]
    assert body["data"][0]["result"] == "success"


def test_manager_cannot_read_audit_events(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ApiManager", role="MANAGER")

    assert client.get("/api/audit-events", headers=auth(token)).status_code == 403
    assert client.get("/api/folders/stats", headers=auth(token)).status_code == 200


@pytest.mark.parametrize(
    ("role", "superadmin", "tenant_admin"),
    [
        ("SUPERADMIN", True, True),
        ("admin", False, True),
        ("MANAGER", False, True),
        ("USER", False, False),
        ("PLATFORM_ADMIN", False, False),
        (None, False, False),
    ],
)
def test_admin_scope_roles(role, superadmin, tenant_admin):
    assert is_superadmin(role) is superadmin
    assert is_tenant_admin(role) is tenant_admin
