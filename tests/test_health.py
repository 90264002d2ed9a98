from marketplace.core.health import HealthStatus
from marketplace.main import health_service


def test_health_endpoints(client):
    body = client.get("/health").json()
    assert body["status"] == "pass"
    assert body["service"] == "marketplace-api"

    assert client.get("/health/live").json() == {"status": "alive"}


def test_readiness_reports_components(client):
    resp = client.get("/health/ready")
    assert resp.status_code in (200, 503)
    checks = resp.json()["checks"]
    assert checks["database:connectivity"]["status"] == "pass"
    # No Stripe keys in the test environment
    assert checks["payments:stripe"]["status"] == "warn"


def test_readiness_fails_when_database_is_down(client, monkeypatch):
    monkeypatch.setattr(
        health_service, "_check_database", lambda: {"status": HealthStatus.FAIL, "output": "connection refused"}
    )
    resp = client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["status"] == "fail"


def test_startup_checks_schema(client):
    body = client.get("/health/startup").json()
    assert body["status"] == "started"
    assert body["checks"]["database:schema"]["status"] == "pass"


def test_metrics_and_info(client):
    metrics = client.get("/metrics").json()
    assert metrics["service"] == "marketplace-api"
    assert "memory_rss_bytes" in metrics["system"]

    info = client.get("/info").json()
    assert info["endpoints"]["ready"] == "/health/ready"


def test_responses_carry_request_id_and_security_headers(client):
    resp = client.get("/api/categories")
    assert resp.headers["X-Request-ID"]
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
