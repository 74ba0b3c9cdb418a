import pytest

from app.freight.core.error_catalog import AppError
from app.freight.services.clients import parse_if_match
from tests.freight_helpers import auth, create_user, login, setup_tenant

BUSINESS = {
    "client_type": "business",
    "company_name": "Acme Imports",
    "email": "Ops@Acme.example.com",
    "siret": "12345678901234",
    "city": "Le Havre",
}


def _create_client(client, token, **overrides) -> dict:
    response = client.post("/api/clients", headers=auth(token), json={**BUSINESS, **overrides})
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def test_create_client(client, db_session):
    tenant, _, token = setup_tenant(client, db_session, suffix="Clients")

    data = _create_client(client, token)

    assert data["email"] == "ops@acme.example.com"
    assert data["version"] == 1
    assert data["country"] == "FR"
    assert data["status"] == "active"
    assert data["tenant_id"] == str(tenant.id)


def test_business_client_requires_company_name(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="NoCompany")

    response = client.post(
        "/api/clients", headers=auth(token), json={"client_type": "business", "email": "x@example.com"}
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_individual_client_requires_names(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Individual")

    missing = client.post(
        "/api/clients", headers=auth(token), json={"client_type": "individual", "email": "a@example.com"}
    )
    created = client.post(
        "/api/clients",
        headers=auth(token),
        json={"client_type": "individual", "email": "a@example.com", "first_name": "Ana", "last_name": "Diaz"},
    )

    assert missing.status_code == 422
    assert created.status_code == 201


def test_duplicate_email_and_siret_conflict(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Dupes")
    _create_client(client, token)

    same_email = client.post(
        "/api/clients", headers=auth(token), json={**BUSINESS, "email": "OPS@acme.example.com", "siret": None}
    )
    same_siret = client.post("/api/clients", headers=auth(token), json={**BUSINESS, "email": "other@example.com"})

    assert same_email.status_code == 409
    assert same_email.json()["details"]["field"] == "email"
    assert same_siret.status_code == 409
    assert same_siret.json()["details"]["field"] == "siret"


def test_same_email_allowed_in_other_tenant(client, db_session):
    _, _, token_a = setup_tenant(client, db_session, suffix="EmailA")
    _, _, token_b = setup_tenant(client, db_session, suffix="EmailB")

    _create_client(client, token_a)
    _create_client(client, token_b)


def test_update_with_if_match(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="IfMatch")
    created = _create_client(client, token)
    url = f"/api/clients/{created['id']}"

    updated = client.put(url, headers=auth(token, **{"If-Match": '"1"'}), json={"phone": "+33 2 35 00 00 00"})
    assert updated.status_code == 200
    assert updated.json()["data"]["version"] == 2
    assert updated.json()["data"]["phone"] == "+33 2 35 00 00 00"

    stale = client.put(url, headers=auth(token, **{"If-Match": "1"}), json={"city": "Rouen"})
    assert stale.status_code == 409
    assert stale.json()["code"] == "VERSION_CONFLICT"
    assert stale.json()["details"] == {"expected_version": 1, "current_version": 2}

    unconditional = client.put(url, headers=auth(token), json={"city": "Rouen"})
    assert unconditional.status_code == 200
    assert unconditional.json()["data"]["version"] == 3


def test_update_cannot_drop_company_name_of_business(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="DropCompany")
    created = _create_client(client, token)

    response = client.put(f"/api/clients/{created['id']}", headers=auth(token), json={"company_name": None})

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "company_name"


def test_update_requires_a_field(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ClientEmpty")
    created = _create_client(client, token)

    response = client.put(f"/api/clients/{created['id']}", headers=auth(token), json={})

    assert response.status_code == 400
    assert response.json()["code"] == "EMPTY_UPDATE"


def test_delete_client(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ClientDel")
    created = _create_client(client, token)
    url = f"/api/clients/{created['id']}"

    stale = client.delete(url, headers=auth(token, **{"If-Match": "7"}))
    assert stale.status_code == 409

    deleted = client.delete(url, headers=auth(token, **{"If-Match": 'W/"1"'}))
    assert deleted.status_code == 200
    assert deleted.json()["data"]["status"] == "archived"
    assert client.get(url, headers=auth(token)).status_code == 404


def test_list_and_stats(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="ClientList")
    _create_client(client, token)
    _create_client(client, token, company_name="Blue Freight", email="blue@example.com", siret=None, status="inactive")
    client.post(
        "/api/clients",
        headers=auth(token),
        json={"client_type": "individual", "email": "li@example.com", "first_name": "Li", "last_name": "Wei"},
    )

    listing = client.get("/api/clients", headers=auth(token), params={"client_type": "business"}).json()
    assert listing["pagination"]["total"] == 2

    search = client.get("/api/clients", headers=auth(token), params={"search": "blue"}).json()
    assert [item["company_name"] for item in search["data"]] == ["Blue Freight"]

    stats = client.get("/api/clients/stats", headers=auth(token)).json()
    assert stats == {
        "total": 3,
        "by_status": {"active": 2, "inactive": 1},
        "by_type": {"business": 2, "individual": 1},
    }


def test_user_role_cannot_manage_clients(client, db_session):
    tenant, _, _ = setup_tenant(client, db_session, suffix="ClientPerm")
    create_user(db_session, tenant=tenant, username="clerk")
    token = login(client, "clerk")

    assert client.get("/api/clients", headers=auth(token)).status_code == 200
    response = client.post("/api/clients", headers=auth(token), json=BUSINESS)
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


@pytest.mark.parametrize("header,expected", [("3", 3), ('"3"', 3), ('W/"3"', 3), (None, None)])
def test_parse_if_match(header, expected):
    assert parse_if_match(header) == expected


def test_parse_if_match_rejects_garbage():
    with pytest.raises(AppError) as exc:
        parse_if_match("abc")
    assert exc.value.error.code == "VALIDATION_ERROR"
