from __future__ import annotations

import uuid

from app.freight.core.security import get_password_hash
from app.freight.db.models import Tenant, User
from app.freight.db.seed import run_seed

PASSWORD = "Pass1234!"


def seed_defaults(db_session):
    run_seed(db_session)


def login(client, username: str, password: str = PASSWORD) -> str:
    response = client.post(
        "/api/auth/login",
        json={"username_or_email": username, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def auth(token: str, **extra) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    headers.update(extra)
    return headers


def create_tenant(db_session, *, suffix: str) -> Tenant:
    tenant = Tenant(id=uuid.uuid4(), name=f"Tenant {suffix}")
    db_session.add(tenant)
    db_session.commit()
    return tenant


def create_user(db_session, *, tenant, username: str, role: str = "USER", **kwargs) -> User:
    user = User(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        username=username,
        email=kwargs.pop("email", f"{username}@example.com"),
        hashed_password=get_password_hash(kwargs.pop("password", PASSWORD)),
        role=role,
        status=kwargs.pop("status", "active"),
        is_active=kwargs.pop("is_active", True),
    )
    db_session.add(user)
    db_session.commit()
    return user


def create_tenant_user(db_session, *, suffix: str, role: str = "ADMIN"):
    tenant = create_tenant(db_session, suffix=suffix)
    user = create_user(db_session, tenant=tenant, username=f"user-{suffix}", role=role)
    return tenant, user


def setup_tenant(client, db_session, *, suffix: str, role: str = "ADMIN"):
    seed_defaults(db_session)
    tenant, user = create_tenant_user(db_session, suffix=suffix, role=role)
    return tenant, user, login(client, user.username)


def create_folder(client, token: str, **overrides) -> dict:
    payload = {"transport_type": "M", "title": "Machine parts", "folder_date": "2025-08-04"}
    payload.update(overrides)
    response = client.post("/api/folders", headers=auth(token), json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def stage_action(client, token: str, folder_id: str, stage: str, action: str, **params):
    return client.put(
        f"/api/folders/{folder_id}/stages/{stage}",
        headers=auth(token),
        json={"action": action, **params},
    )
