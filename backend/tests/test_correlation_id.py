"""Tests for correlation ID header on all responses."""


def test_correlation_id_on_success(client):
    """Test correlation ID is present on successful responses."""
    response = client.get("/health")
    assert response.status_code == 200
    assert len(response.headers["X-Correlation-ID"]) == 8  # 4 bytes as hex


def test_correlation_id_on_validation_error(client):
    """Test correlation ID is present on 422 validation errors."""
    response = client.post("/api/v1/pow/solve", json={"challenge": ""})
    assert response.status_code == 422
    assert len(response.headers["X-Correlation-ID"]) == 8


def test_correlation_id_on_http_exception(client, monkeypatch):
    """Test correlation ID is present on HTTPException responses."""
    from sgcaptcha.config import settings

    monkeypatch.setattr(settings, "login_username", None)
    monkeypatch.setattr(settings, "login_password", None)
    response = client.post("/api/v1/sessions/login", json={})
    assert response.status_code == 400
    assert "X-Correlation-ID" in response.headers


def test_correlation_ids_are_unique(client):
    """Test each request gets its own correlation ID."""
    first = client.get("/health").headers["X-Correlation-ID"]
    second = client.get("/health").headers["X-Correlation-ID"]
    assert first != second
