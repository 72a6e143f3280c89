"""
Integration tests for the health, status and metrics endpoints.
"""
import pytest

from garagebook.lib.metrics import get_metrics_collector, reset_metrics


pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def clear_metrics():
    """Clear metrics before each test."""
    reset_metrics()
    yield
    reset_metrics()


async def test_health_endpoint(client):
    """Test that /health returns 200 with {status: ok}."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_status_reports_counts(client, catalog):
    response = await client.get("/api/status")

    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "ok"
    assert data["counts"] == {
        "customers": 0,
        "services": 4,
        "bookings": 0,
        "loyalty_accounts": 0,
    }


async def test_metrics_endpoint_returns_prometheus_format(client):
    """Test /metrics endpoint returns Prometheus text format."""
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; version=0.0.4; charset=utf-8"
    assert response.text == ""


async def test_metrics_after_booking(client, catalog, alice):
    await client.post("/api/bookings", json=alice)

    response = await client.get("/metrics")

    assert 'bookings_created_total{token_status="assigned"} 1' in response.text
    assert 'customers_resolved_total{outcome="created"} 1' in response.text
    assert get_metrics_collector().get_counter_value(
        "bookings_created_total", {"token_status": "assigned"}
    ) == 1
