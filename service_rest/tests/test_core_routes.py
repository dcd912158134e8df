"""
Tests for the metrics, generic API and admin routers owned by the service.
"""

import pytest
from fastapi.testclient import TestClient

from service_rest.app.main import create_app
from service_rest.tests.helpers import ADMIN_KEY, API_KEY, make_config, sentinel_routers


@pytest.fixture
def limited_client(sentinel):
    config = make_config(rate_limiter_enabled=True, rate_limiter_window_ms=60000, rate_limiter_max=5)
    return TestClient(create_app(config, sentinel_routers(sentinel)))


def test_api_status_reports_features(client):
    response = client.get("/api/status")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "rest"
    assert data["features"] == {"rate_limiter": False, "json_rpc": False}


def test_api_routes_lists_mounted_tree(client):
    response = client.get("/api/routes")

    assert response.status_code == 200
    paths = {route["path"] for route in response.json()["routes"]}
    assert "/v0/shard/{shardID}/block/{item}" in paths
    assert "/v0/shard/{shardID}/erc1155/{item}" in paths
    assert "/v0/price/{item}" in paths
    assert "/api/status" in paths
    assert not any(path.startswith("/v0/rpc") for path in paths)
    assert "/v0/{path:path}" not in paths


def test_metrics_count_requests(client):
    client.get("/api/status")

    body = client.get("/metrics").text

    assert 'http_requests_total{method="GET",status_code="200"}' in body
    assert "process_" in body or "python_info" in body


def test_admin_status_without_limiter(client):
    response = client.get("/admin/rate-limit/testclient", headers={"X-API-Key": ADMIN_KEY})

    assert response.status_code == 200
    assert response.json() == {"client_id": "testclient", "enabled": False}


def test_admin_status_and_reset(limited_client):
    headers = {"X-API-Key": API_KEY}
    admin_headers = {"X-API-Key": ADMIN_KEY}
    for _ in range(2):
        limited_client.get("/v0/shard/0/block/1", headers=headers)

    # The status call itself is the third request in the window
    status = limited_client.get("/admin/rate-limit/testclient", headers=admin_headers).json()
    assert status["enabled"] is True
    assert status["current_count"] == 3
    assert status["limit"] == 5

    reset = limited_client.delete("/admin/rate-limit/testclient", headers=admin_headers)
    assert reset.status_code == 204

    status = limited_client.get("/admin/rate-limit/testclient", headers=admin_headers).json()
    assert status["current_count"] == 1


def test_admin_routes_require_admin_key(client):
    assert client.get("/admin/rate-limit/testclient").status_code == 401
    assert client.delete("/admin/rate-limit/testclient", headers={"X-API-Key": API_KEY}).status_code == 403
