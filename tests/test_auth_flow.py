from sqlalchemy import select

from app.freight.db.models import AuditEvent
from tests.freight_helpers import PASSWORD, auth, create_tenant, create_user, login


def test_login_with_email(client, db_session):
    tenant = create_tenant(db_session, suffix="Auth")
    create_user(db_session, tenant=tenant, username="jane")

    response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": PASSWORD})

    assert response.status_code == 200
    payload = response.json()
    assert payload["access_token"]
    assert payload["token_type"] == "bearer"
    assert set(payload) == {"access_token", "token_type", "trace_id"}
    assert payload["trace_id"]


def test_login_invalid_password(client, db_session):
    tenant = create_tenant(db_session, suffix="Auth")
    create_user(db_session, tenant=tenant, username="jane")

    response = client.post("/api/auth/login", json={"username_or_email": "jane", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"
    failures = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "auth.login.failed")
    ).scalars().all()
    assert len(failures) == 1
    assert failures[0].result == "failure"


def test_login_unknown_user(client):
    response = client.post("/api/auth/login", json={"username_or_email": "ghost", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_login_blocked_when_suspended(client, db_session):
    tenant = create_tenant(db_session, suffix="Auth")
    create_user(db_session, tenant=tenant, username="jane", status="suspended")

    response = client.post("/api/auth/login", json={"username_or_email": "jane", "password": PASSWORD})

    assert response.status_code == 403
    assert response.json()["code"] == "USER_INACTIVE"


def test_login_requires_identifier(client):
    response = client.post("/api/auth/login", json={"password": PASSWORD})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_me_returns_current_user(client, db_session):
    tenant = create_tenant(db_session, suffix="Auth")
    user = create_user(db_session, tenant=tenant, username="jane", role="MANAGER")
    token = login(client, "jane")

    response = client.get("/api/me", headers=auth(token))

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == str(user.id)
    assert payload["tenant_id"] == str(tenant.id)
    assert payload["role"] == "MANAGER"


def test_me_rejects_bad_token(client):
    response = client.get("/api/me", headers=auth("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_me_requires_token(client):
    response = client.get("/api/me")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
