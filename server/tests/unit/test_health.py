"""Unit tests for health endpoints."""

from datetime import date

import pytest


@pytest.mark.asyncio
async def test_health_check(test_client):
    """Test the health check endpoint."""
    response = await test_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "roomledger"
    assert "version" in data


@pytest.mark.asyncio
async def test_ready_check(test_client):
    """Test the readiness check reaches the database."""
    response = await test_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["workers"]["night_audit"]["running"] is False
    assert data["checks"]["workers"]["night_audit"]["iterations"] == 0


@pytest.mark.asyncio
async def test_health_ping_reports_audit_behind(test_client):
    """Test a property that was never audited is flagged."""
    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "audit_behind"
    assert data["business_date"] == "2024-06-05"
    assert data["last_audited_date"] is None
    assert data["timestamp"].startswith("2024-06-05T10:00:00")


@pytest.mark.asyncio
async def test_health_ping_healthy_after_audit(test_client, night_audit_runner):
    """Test closing the previous business date clears the flag."""
    await night_audit_runner.run_audit(date(2024, 6, 4))

    response = await test_client.post("/v1/health/ping", json={})
    data = response.json()
    assert data["status"] == "healthy"
    assert data["last_audited_date"] == "2024-06-04"


@pytest.mark.asyncio
async def test_request_id_echoed(test_client):
    """Test the request ID header is passed back."""
    response = await test_client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "booking_transitions_total" in response.text
    assert "night_audit_runs_total" in response.text


@pytest.mark.asyncio
async def test_request_id_generated(test_client):
    """Test a request without an ID gets one."""
    response = await test_client.post("/v1/health/ping", json={})
    assert len(response.headers["X-Request-ID"]) == 36


@pytest.mark.asyncio
async def test_metrics_report_audit_lag(test_client, night_audit_runner):
    """Test the scrape publishes how far the audit trails the business date."""
    await night_audit_runner.run_audit(date(2024, 6, 3))

    response = await test_client.get("/metrics")

    assert "night_audit_lag_days 2.0" in response.text
