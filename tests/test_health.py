def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_ready_reports_database(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_trace_id_is_echoed(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-abc"})
    assert response.headers["X-Trace-ID"] == "trace-abc"
    assert response.json()["trace_id"] == "trace-abc"


def test_openapi_documents_error_envelope(client):
    schema = client.get("/openapi.json").json()

    responses = schema["paths"]["/api/folders"]["get"]["responses"]
    assert {"403", "404", "422"} <= set(responses)
    assert "ErrorEnvelope" in schema["components"]["schemas"]
    assert "/health" in schema["paths"]
