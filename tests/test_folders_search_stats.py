from datetime import datetime

from tests.freight_helpers import auth, create_folder, setup_tenant, stage_action


def test_search_with_filters_and_metadata(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Search")
    create_folder(client, token, transport_type="M", priority="urgent", title="Coffee beans")
    create_folder(client, token, transport_type="A", priority="critical", title="Vaccines")
    create_folder(client, token, transport_type="T", priority="low", title="Furniture")

    response = client.post(
        "/api/folders/search",
        headers=auth(token),
        json={
            "filters": {"transport_type": ["M", "A"], "is_urgent": True},
            "sort": {"field": "title", "order": "asc"},
            "pagination": {"page": 1, "limit": 10},
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert [item["title"] for item in payload["data"]] == ["Coffee beans", "Vaccines"]
    assert payload["search_metadata"] == {
        "total_results": 2,
        "page_results": 2,
        "search_query": None,
        "filters_applied": 2,
    }
    assert payload["applied_filters"] == {"transport_type": ["M", "A"], "is_urgent": True}
    assert payload["sort_applied"] == {"field": "title", "order": "asc"}


def test_search_by_text_and_date_range(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="SearchText")
    create_folder(client, token, title="Coffee beans", folder_date="2025-08-01")
    create_folder(client, token, title="Coffee machines", folder_date="2025-08-10")

    response = client.post(
        "/api/folders/search",
        headers=auth(token),
        json={"query": "coffee", "filters": {"date_range": {"from": "2025-08-05", "to": "2025-08-31"}}},
    )

    assert response.status_code == 200
    assert [item["title"] for item in response.json()["data"]] == ["Coffee machines"]


def test_search_created_range_with_bare_dates_covers_whole_day(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="SearchCreated")
    create_folder(client, token, title="Created today")
    today = datetime.utcnow().date().isoformat()

    response = client.post(
        "/api/folders/search",
        headers=auth(token),
        json={"filters": {"created_range": {"from": today, "to": today}}},
    )

    assert response.status_code == 200
    assert [item["title"] for item in response.json()["data"]] == ["Created today"]


def test_search_rejects_oversized_page(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="SearchLimit")

    response = client.post("/api/folders/search", headers=auth(token), json={"pagination": {"limit": 500}})

    assert response.status_code == 422


def test_overview_stats(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Overview")
    create_folder(client, token, transport_type="M")
    create_folder(client, token, transport_type="M")
    create_folder(client, token, transport_type="A")

    response = client.get("/api/folders/stats", headers=auth(token))

    assert response.status_code == 200
    payload = response.json()
    assert payload["type"] == "overview"
    data = payload["data"]
    assert data["summary"]["total_folders"] == 3
    assert data["by_status"] == {"draft": 3}
    transport = {entry["transport_type"]: entry["total_folders"] for entry in data["by_transport"]}
    assert transport == {"A": 1, "M": 2}


def test_transport_stats_filtered(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="Transport")
    create_folder(client, token, transport_type="M")
    create_folder(client, token, transport_type="T")

    response = client.get("/api/folders/stats", headers=auth(token), params={"type": "transport", "transport_type": "T"})

    assert response.status_code == 200
    assert response.json()["data"]["by_transport"] == [
        {"transport_type": "T", "total_folders": 1, "by_status": {"draft": 1}}
    ]


def test_assignee_stats(client, db_session):
    _, user, token = setup_tenant(client, db_session, suffix="AssigneeStats")
    create_folder(client, token, assigned_to=str(user.id))
    create_folder(client, token)

    data = client.get("/api/folders/stats", headers=auth(token), params={"type": "assignee"}).json()["data"]

    assert data["by_assignee"][0]["assigned_to"] == str(user.id)
    assert data["by_assignee"][-1]["assigned_to"] is None


def test_stage_stats_and_performance(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="StageStats")
    folder = create_folder(client, token)
    stage_action(client, token, folder["id"], "enregistrement", "start")
    stage_action(client, token, folder["id"], "enregistrement", "complete")
    create_folder(client, token)

    stages = client.get("/api/folders/stats", headers=auth(token), params={"type": "stages"}).json()["data"]
    registration = next(item for item in stages["stage_statistics"] if item["stage"] == "enregistrement")
    assert registration["total"] == 2
    assert registration["by_status"]["completed"] == 1
    assert registration["completion_rate"] == 50

    performance = client.get(
        "/api/folders/stats", headers=auth(token), params={"type": "performance"}
    ).json()["data"]
    assert performance["summary"]["total_folders"] == 2
    assert performance["summary"]["completed_folders"] == 0
    percentages = sorted(row["completion_percentage"] for row in performance["folders_progress"])
    assert percentages == [0, 13]
    assert performance["summary"]["average_progress"] == 7


def test_unknown_stats_type(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="BadStats")

    response = client.get("/api/folders/stats", headers=auth(token), params={"type": "revenue"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATS_TYPE"


def test_period_stats_group_by_month(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="PeriodStats")
    create_folder(client, token, transport_type="M", folder_date="2025-07-15")
    create_folder(client, token, transport_type="A", folder_date="2025-08-01")
    create_folder(client, token, transport_type="M", folder_date="2025-08-20")
    create_folder(client, token, transport_type="M", folder_date="2024-12-31")

    data = client.get("/api/folders/stats", headers=auth(token), params={"type": "period"}).json()["data"]
    assert [row["period"] for row in data["by_period"]] == ["2025-08", "2025-07", "2024-12"]
    assert data["by_period"][0] == {
        "period": "2025-08",
        "total_folders": 2,
        "by_status": {"draft": 2},
        "by_transport": {"A": 1, "M": 1},
    }

    year = client.get(
        "/api/folders/stats", headers=auth(token), params={"type": "period", "period": "2025"}
    ).json()["data"]
    assert year["period"] == "2025"
    assert [row["period"] for row in year["by_period"]] == ["2025-08", "2025-07"]

    month = client.get(
        "/api/folders/stats", headers=auth(token), params={"type": "period", "period": "2025-07"}
    ).json()["data"]
    assert [row["total_folders"] for row in month["by_period"]] == [1]


def test_period_stats_reject_malformed_period(client, db_session):
    _, _, token = setup_tenant(client, db_session, suffix="BadPeriod")

    response = client.get("/api/folders/stats", headers=auth(token), params={"type": "period", "period": "2025-13"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PERIOD"
