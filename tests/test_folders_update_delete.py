from sqlalchemy import select

from app.freight.db.models import Folder
from tests.freight_helpers import auth, create_folder, create_user, login, setup_tenant


def test_update_folder_fields(client, db_session):
    tenant, _, token = setup_tenant(client, db_session, suffix="Upd")
    assignee = create_user(db_session, tenant=tenant, username="agent-upd")
    folder = create_folder(client, token)

    response = client.put(
        f"/api/folders/{folder['id']}",
        headers=auth(token),
        json={"title": "Renamed", "priority": "critical", "assigned_to": str(assignee.id)},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Folder updated"
    assert payload["data"]["title"] == "Renamed"
    assert payload["data"]["priority"] == "critical"
    assert payload["data"]["assigned_to"] == str(assignee.id)
    assert payload["data"]["folder_number"] == folder["folder_number"]


def test_update_folder_requires_a_field(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Empty")
    folder = create_folder(client, token)

    response = client.put(f"/api/folders/{folder['id']}", headers=auth(token), json={})

    assert response.status_code == 400
    assert response.json()["code"] == "EMPTY_UPDATE"


def test_update_folder_ignores_null_for_required_columns(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Nulls")
    folder = create_folder(client, token)

    response = client.put(
        f"/api/folders/{folder['id']}",
        headers=auth(token),
        json={"status": None, "title": "Kept status"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "draft"


def test_update_folder_rejects_actual_before_expected(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="UpdDates")
    folder = create_folder(client, token, expected_delivery_date="2025-09-10")

    response = client.put(
        f"/api/folders/{folder['id']}",
        headers=auth(token),
        json={"actual_delivery_date": "2025-09-01"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_DATE_RANGE"


def test_update_folder_denied_for_unrelated_user(client, db_session):
    tenant, _, admin_token = setup_tenant(client, db_session, suffix="Deny")
    create_user(db_session, tenant=tenant, username="outsider")
    token = login(client, "outsider")
    folder = create_folder(client, admin_token)

    response = client.put(f"/api/folders/{folder['id']}", headers=auth(token), json={"title": "Nope"})

    assert response.status_code == 403
    assert response.json()["code"] == "FOLDER_MODIFY_DENIED"


def test_assignee_can_update_folder(client, db_session):
    tenant, _, admin_token = setup_tenant(client, db_session, suffix="Assignee")
    assignee = create_user(db_session, tenant=tenant, username="assignee-1")
    folder = create_folder(client, admin_token, assigned_to=str(assignee.id))
    token = login(client, "assignee-1")

    response = client.put(f"/api/folders/{folder['id']}", headers=auth(token), json={"title": "Mine now"})

    assert response.status_code == 200


def test_delete_folder_soft_deletes(client, db_session):
    _, user, token = setup_tenant(client, db_session, suffix="Del")
    folder = create_folder(client, token)

    response = client.delete(f"/api/folders/{folder['id']}", headers=auth(token))

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"] == {"id": folder["id"], "folder_number": folder["folder_number"]}
    assert client.get(f"/api/folders/{folder['id']}", headers=auth(token)).status_code == 404

    row = db_session.execute(select(Folder).where(Folder.folder_number == folder["folder_number"])).scalars().one()
    assert row.deleted_at is not None
    assert row.deleted_by == user.id


def test_delete_protected_status(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Protected")
    folder = create_folder(client, token)
    client.put(f"/api/folders/{folder['id']}", headers=auth(token), json={"status": "shipped"})

    response = client.delete(f"/api/folders/{folder['id']}", headers=auth(token))

    assert response.status_code == 409
    assert response.json()["code"] == "FOLDER_DELETE_PROTECTED"


def test_delete_reserved_for_creator_or_admin(client, db_session):
    tenant, _, admin_token = setup_tenant(client, db_session, suffix="DelPerm")
    assignee = create_user(db_session, tenant=tenant, username="assignee-del")
    folder = create_folder(client, admin_token, assigned_to=str(assignee.id))
    token = login(client, "assignee-del")

    response = client.delete(f"/api/folders/{folder['id']}", headers=auth(token))

    assert response.status_code == 403
    assert response.json()["code"] == "FOLDER_MODIFY_DENIED"

    own = create_folder(client, token)
    assert client.delete(f"/api/folders/{own['id']}", headers=auth(token)).status_code == 200
