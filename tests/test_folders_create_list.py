from sqlalchemy import select

from app.freight.db.models import AuditEvent, FolderProcessingStage
from tests.freight_helpers import auth, create_folder, create_user, login, setup_tenant


def test_create_folder_numbers_and_initializes_stages(client, db_session):
    tenant, user, token = setup_tenant(client, db_session, suffix="Create")

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "M", "title": "Machine parts", "folder_date": "2025-08-04"},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["stages_initialized"] is True
    folder = payload["data"]
    assert folder["folder_number"] == "M250804-000001"
    assert folder["status"] == "draft"
    assert folder["priority"] == "normal"
    assert folder["created_by"] == str(user.id)
    assert folder["metrics"]["total_stages"] == 8
    assert folder["metrics"]["current_stage"] == "enregistrement"

    stages = db_session.execute(
        select(FolderProcessingStage).where(FolderProcessingStage.tenant_id == tenant.id)
    ).scalars().all()
    assert len(stages) == 8
    assert {stage.status for stage in stages} == {"pending"}


def test_folder_sequence_is_per_transport_and_day(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Seq")

    first = create_folder(client, token, transport_type="M")
    second = create_folder(client, token, transport_type="M")
    air = create_folder(client, token, transport_type="A")
    next_day = create_folder(client, token, transport_type="M", folder_date="2025-08-05")

    assert first["folder_number"] == "M250804-000001"
    assert second["folder_number"] == "M250804-000002"
    assert air["folder_number"] == "A250804-000001"
    assert next_day["folder_number"] == "M250805-000001"


def test_folder_sequence_is_per_tenant(client, db_session):
    _, _, token_a = setup_tenant(client, db_session, suffix="SeqA")
    _, _, token_b = setup_tenant(client, db_session, suffix="SeqB")

    assert create_folder(client, token_a)["folder_number"] == "M250804-000001"
    assert create_folder(client, token_b)["folder_number"] == "M250804-000001"


def test_create_folder_without_stages(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="NoStages")

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "T", "initialize_stages": False},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["stages_initialized"] is None
    assert payload["data"]["metrics"]["total_stages"] == 0


def test_create_folder_rejects_unknown_transport(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="BadType")

    response = client.post("/api/folders", headers=auth(token), json={"transport_type": "X"})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_folder_rejects_delivery_before_folder_date(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Dates")

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "M", "folder_date": "2025-08-04", "expected_delivery_date": "2025-08-01"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_DATE_RANGE"


def test_create_folder_rejects_assignee_from_other_tenant(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="AssignA")
    other_tenant, other_user, _ = setup_tenant(client, db_session, suffix="AssignB")

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "M", "assigned_to": str(other_user.id)},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_ASSIGNEE"


def test_create_folder_rejects_unknown_client(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="NoClient")

    response = client.post(
        "/api/folders",
        headers=auth(token),
        json={"transport_type": "M", "client_id": "00000000-0000-0000-0000-000000000001"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "CLIENT_NOT_FOUND"


def test_create_folder_idempotent_replay(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Idem")
    payload = {"transport_type": "M", "title": "Replay me", "folder_date": "2025-08-04"}

    first = client.post("/api/folders", headers=auth(token, **{"Idempotency-Key": "folder-1"}), json=payload)
    replay = client.post("/api/folders", headers=auth(token, **{"Idempotency-Key": "folder-1"}), json=payload)
    mismatch = client.post(
        "/api/folders",
        headers=auth(token, **{"Idempotency-Key": "folder-1"}),
        json={**payload, "title": "Different"},
    )

    assert first.status_code == 201
    assert replay.status_code == 201
    assert replay.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert replay.json()["data"]["id"] == first.json()["data"]["id"]
    assert mismatch.status_code == 409
    assert mismatch.json()["code"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"

    listing = client.get("/api/folders", headers=auth(token)).json()
    assert listing["pagination"]["total"] == 1


def test_create_folder_writes_audit_event(client, db_session):
    tenant, _, token = setup_tenant(client, db_session, suffix="Audit")
    folder = create_folder(client, token)

    events = db_session.execute(
        select(AuditEvent).where(AuditEvent.tenant_id == tenant.id, AuditEvent.action == "folder.create")
    ).scalars().all()

    assert len(events) == 1
    assert events[0].entity_id == folder["id"]
    assert events[0].after_payload["folder_number"] == folder["folder_number"]


def test_get_folder_detail(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Detail")
    folder = create_folder(client, token)

    response = client.get(f"/api/folders/{folder['id']}", headers=auth(token))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["folder_number"] == folder["folder_number"]
    assert data["metrics"]["progress_percentage"] == 0


def test_get_folder_invalid_and_missing_ids(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Ids")

    invalid = client.get("/api/folders/not-a-uuid", headers=auth(token))
    missing = client.get("/api/folders/00000000-0000-0000-0000-000000000001", headers=auth(token))

    assert invalid.status_code == 400
    assert invalid.json()["code"] == "INVALID_IDENTIFIER"
    assert missing.status_code == 404
    assert missing.json()["code"] == "FOLDER_NOT_FOUND"


def test_folders_are_isolated_between_tenants(client, db_session):
    _, _, token_a = setup_tenant(client, db_session, suffix="IsoA")
    tenant_b, _, token_b = setup_tenant(client, db_session, suffix="IsoB")
    folder = create_folder(client, token_a)

    assert client.get(f"/api/folders/{folder['id']}", headers=auth(token_b)).status_code == 404
    assert client.get("/api/folders", headers=auth(token_b)).json()["pagination"]["total"] == 0
    cross = client.get("/api/folders", headers=auth(token_a), params={"tenant_id": str(tenant_b.id)})
    assert cross.status_code == 403
    assert cross.json()["code"] == "CROSS_TENANT_ACCESS_DENIED"


def test_list_folders_filters_and_pagination(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="List")
    create_folder(client, token, transport_type="M", priority="urgent", title="Steel coils")
    create_folder(client, token, transport_type="A", title="Spare parts")
    create_folder(client, token, transport_type="M", title="Textiles", client_reference="PO-77")

    everything = client.get("/api/folders", headers=auth(token), params={"limit": 2})
    assert everything.status_code == 200
    payload = everything.json()
    assert len(payload["data"]) == 2
    assert payload["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }

    maritime = client.get("/api/folders", headers=auth(token), params={"transport_type": "M"}).json()
    assert maritime["pagination"]["total"] == 2

    urgent = client.get("/api/folders", headers=auth(token), params={"priority": "urgent"}).json()
    assert [item["title"] for item in urgent["data"]] == ["Steel coils"]

    by_reference = client.get("/api/folders", headers=auth(token), params={"search": "po-77"}).json()
    assert [item["title"] for item in by_reference["data"]] == ["Textiles"]

    by_number = client.get("/api/folders", headers=auth(token), params={"search": "A250804-000001"}).json()
    assert [item["title"] for item in by_number["data"]] == ["Spare parts"]

    without_bl = client.get("/api/folders", headers=auth(token), params={"no_bl": True}).json()
    assert without_bl["pagination"]["total"] == 3

    sorted_titles = client.get(
        "/api/folders", headers=auth(token), params={"sort_by": "title", "sort_order": "asc"}
    ).json()
    assert [item["title"] for item in sorted_titles["data"]] == ["Spare parts", "Steel coils", "Textiles"]


def test_list_folders_limit_is_clamped(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Clamp")

    response = client.get("/api/folders", headers=auth(token), params={"limit": 1000})

    assert response.status_code == 200
    assert response.json()["pagination"]["limit"] == 100


def test_viewer_cannot_create_folder(client, db_session):
    tenant, _, _ = setup_tenant(client, db_session, suffix="Viewer")
    create_user(db_session, tenant=tenant, username="viewer-1", role="VIEWER")
    token = login(client, "viewer-1")

    assert client.get("/api/folders", headers=auth(token)).status_code == 200
    response = client.post("/api/folders", headers=auth(token), json={"transport_type": "M"})
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"
