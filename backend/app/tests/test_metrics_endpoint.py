from __future__ import annotations

from fastapi.testclient import TestClient

from backend.app.main import app


client = TestClient(app)


def test_metrics_endpoint_exposes_core_metrics() -> None:
    response = client.get("/metrics")
    assert response.status_code == 200
    content_type = response.headers.get("content-type", "")
    assert content_type.startswith("text/plain")

    body = response.text
    assert body

    # Core API metrics
    assert "http_server_request_duration_seconds" in body
    assert "http_server_requests_total" in body

    # Dataset registry metrics
    assert "spectr_dataset_operations_total" in body

    # Usage metering metrics
    assert "spectr_usage_status_total" in body
    assert "spectr_usage_invalid_metric_total" in body

    # Auth metrics
    assert "spectr_jwt_validation_duration_seconds" in body
    assert "auth_jwt_invalid_total" in body


def test_metrics_endpoint_records_its_own_requests() -> None:
    client.get("/metrics")
    body = client.get("/metrics").text
    assert 'route="/metrics"' in body
