from tests.freight_helpers import auth, create_user, login, setup_tenant

BUSINESS = {
    "client_type": "business",
    "company_name": "Harbor Logistics",
    "email": "desk@harbor.example.com",
}


def _create_client(client, token, **overrides) -> dict:
    response = client.post("/api/clients", headers=auth(token), json={**BUSINESS, **overrides})
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def _add_contact(client, token, client_id, **overrides):
    payload = {"first_name": "Lea", "last_name": "Martin", "contact_type": "billing", **overrides}
    return client.post(f"/api/clients/{client_id}/contacts", headers=auth(token), json=payload)


def test_first_contact_becomes_primary(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Contacts")
    created = _create_client(client, token)

    response = _add_contact(client, token, created["id"], email="Lea@Harbor.example.com")

    assert response.status_code == 201
    payload = response.json()
    assert payload["contact"]["is_primary"] is True
    assert payload["contact"]["email"] == "lea@harbor.example.com"
    assert payload["client"]["version"] == created["version"] + 1


def test_new_primary_demotes_previous(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Primary")
    created = _create_client(client, token)
    first = _add_contact(client, token, created["id"]).json()["contact"]

    second = _add_contact(client, token, created["id"], first_name="Marc", is_primary=True).json()["contact"]

    listed = client.get(f"/api/clients/{created['id']}/contacts", headers=auth(token)).json()["data"]
    primaries = {item["id"]: item["is_primary"] for item in listed}
    assert primaries == {first["id"]: False, second["id"]: True}
    assert listed[0]["id"] == second["id"]


def test_contacts_only_for_business_clients(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="IndividualContacts")
    person = _create_client(
        client,
        token,
        client_type="individual",
        company_name=None,
        first_name="Ana",
        last_name="Diaz",
        email="ana@example.com",
    )

    response = _add_contact(client, token, person["id"])

    assert response.status_code == 400
    assert response.json()["code"] == "CONTACTS_REQUIRE_BUSINESS_CLIENT"


def test_contact_fields_are_validated(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ContactFields")
    created = _create_client(client, token)

    bad_type = _add_contact(client, token, created["id"], contact_type="sales")
    bad_email = _add_contact(client, token, created["id"], email="not-an-email")
    long_title = _add_contact(client, token, created["id"], title="x" * 101)

    assert bad_type.status_code == 422
    assert bad_email.status_code == 422
    assert long_title.status_code == 422


def test_update_contact_promotes_it(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="UpdateContact")
    created = _create_client(client, token)
    first = _add_contact(client, token, created["id"]).json()["contact"]
    second = _add_contact(client, token, created["id"], first_name="Marc").json()["contact"]
    assert second["is_primary"] is False

    response = client.put(
        f"/api/clients/{created['id']}/contacts/{second['id']}",
        headers=auth(token),
        json={"is_primary": True, "department": "Finance"},
    )

    assert response.status_code == 200
    assert response.json()["contact"]["is_primary"] is True
    assert response.json()["contact"]["department"] == "Finance"
    listed = client.get(f"/api/clients/{created['id']}/contacts", headers=auth(token)).json()["data"]
    assert next(item for item in listed if item["id"] == first["id"])["is_primary"] is False


def test_deactivate_then_remove_contact(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="RemoveContact")
    created = _create_client(client, token)
    first = _add_contact(client, token, created["id"]).json()["contact"]
    second = _add_contact(client, token, created["id"], first_name="Marc").json()["contact"]
    base = f"/api/clients/{created['id']}/contacts"

    deactivated = client.delete(f"{base}/{first['id']}", headers=auth(token), params={"deactivate_only": True})

    assert deactivated.status_code == 200
    assert deactivated.json() == {"action": "deactivated", "contact_id": first["id"], "remaining_contacts": 2}
    listed = {item["id"]: item for item in client.get(base, headers=auth(token)).json()["data"]}
    assert listed[first["id"]]["is_active"] is False
    assert listed[second["id"]]["is_primary"] is True

    removed = client.delete(f"{base}/{first['id']}", headers=auth(token))

    assert removed.json() == {"action": "removed", "contact_id": first["id"], "remaining_contacts": 1}


def test_last_active_contact_cannot_be_removed(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="LastContact")
    created = _create_client(client, token)
    only = _add_contact(client, token, created["id"]).json()["contact"]
    url = f"/api/clients/{created['id']}/contacts/{only['id']}"

    removed = client.delete(url, headers=auth(token))
    deactivated = client.put(url, headers=auth(token), json={"is_active": False})

    assert removed.status_code == 409
    assert removed.json()["code"] == "LAST_ACTIVE_CONTACT"
    assert deactivated.status_code == 409


def test_unknown_contact_is_not_found(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="MissingContact")
    created = _create_client(client, token)

    response = client.delete(
        f"/api/clients/{created['id']}/contacts/00000000-0000-0000-0000-000000000000", headers=auth(token)
    )

    assert response.status_code == 404
    assert response.json()["code"] == "CONTACT_NOT_FOUND"


def test_user_role_lists_but_cannot_add_contacts(client, db_session):
    tenant, _, admin_token = setup_tenant(client, db_session, suffix="ContactRoles")
    created = _create_client(client, admin_token)
    _add_contact(client, admin_token, created["id"])
    create_user(db_session, tenant=tenant, username="contact-reader", role="USER")
    user_token = login(client, "contact-reader")

    listed = client.get(f"/api/clients/{created['id']}/contacts", headers=auth(user_token))
    forbidden = _add_contact(client, user_token, created["id"])

    assert listed.status_code == 200
    assert len(listed.json()["data"]) == 1
    assert forbidden.status_code == 403


def test_contacts_are_tenant_scoped(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ContactScope")
    created = _create_client(client, token)
    _, _, other_token = setup_tenant(client, db_session, suffix="ContactScopeOther")

    response = client.get(f"/api/clients/{created['id']}/contacts", headers=auth(other_token))

    assert response.status_code == 404
    assert response.json()["code"] == "CLIENT_NOT_FOUND"
