"""Tests for the session HTTP API."""

import base64

from sgcaptcha.config import settings
from tests.test_utils import CONTENT_PAGE, ORIGIN, verify_solution


class TestSolve:
    def test_solve_challenge(self, client):
        """Test solving a challenge returns a valid solution."""
        response = client.post("/api/v1/pow/solve", json={"challenge": "4:167:ab:cd:"})
        assert response.status_code == 200

        data = response.json()
        assert data["found"] is True
        assert data["complexity"] == 4
        assert verify_solution("4:167:ab:cd:", base64.b64decode(data["solution"]))
        assert data["attempts"] >= 0

    def test_solve_budget_exhausted(self, client):
        """Test an exhausted budget returns found=false."""
        response = client.post(
            "/api/v1/pow/solve", json={"challenge": "28:1:ab:cd:", "max_attempts": 5}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["found"] is False
        assert data["solution"] is None
        assert data["complexity"] == 28

    def test_solve_malformed_challenge(self, client):
        """Test a malformed challenge is a 422."""
        response = client.post("/api/v1/pow/solve", json={"challenge": "xx:1:ab:cd:"})
        assert response.status_code == 422

    def test_solve_rejects_oversized_budget(self, client):
        """Test max_attempts above the cap is rejected."""
        response = client.post(
            "/api/v1/pow/solve", json={"challenge": "4:1:ab:cd:", "max_attempts": 10**9}
        )
        assert response.status_code == 422


class TestSessions:
    def test_status_of_fresh_session(self, client):
        """Test status of an unused origin is a blank session."""
        response = client.get("/api/v1/sessions/status")
        assert response.status_code == 200
        data = response.json()
        assert data["session_valid"] is False
        assert data["cookie_count"] == 0
        assert data["state"] == "unchallenged"

    def test_bypass(self, client):
        """Test bypass establishes a session visible in status."""
        response = client.post("/api/v1/sessions/bypass", json={})
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["status"]["session_valid"] is True
        assert data["status"]["has_session_cookie"] is True
        assert data["status"]["last_solve_time"] is not None

        status = client.get("/api/v1/sessions/status", params={"origin": ORIGIN}).json()
        assert status["session_valid"] is True

    def test_bypass_failure_is_not_an_http_error(self, client, fake_origin):
        """Test a failed bypass is reported in the body."""
        fake_origin.accept_solutions = False
        response = client.post("/api/v1/sessions/bypass", json={"origin": ORIGIN})
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["status"]["state"] == "failed"

    def test_fetch(self, client):
        """Test fetching a page through the session."""
        response = client.post("/api/v1/sessions/fetch", json={"url": f"{ORIGIN}/listings/"})
        assert response.status_code == 200
        data = response.json()
        assert data["status_code"] == 200
        assert data["body"] == CONTENT_PAGE
        assert data["url"] == f"{ORIGIN}/listings/"

    def test_fetch_failure(self, client, fake_origin):
        """Test a failed fetch is a 502."""
        fake_origin.accept_solutions = False
        response = client.post("/api/v1/sessions/fetch", json={"url": f"{ORIGIN}/listings/"})
        assert response.status_code == 502

    def test_login(self, client):
        """Test login with explicit credentials."""
        response = client.post(
            "/api/v1/sessions/login",
            json={"username": "user@example.com", "password": "secret"},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["status"]["has_auth_cookie"] is True

    def test_login_uses_configured_credentials(self, client, monkeypatch):
        """Test login falls back to configured credentials."""
        monkeypatch.setattr(settings, "login_username", "configured@example.com")
        monkeypatch.setattr(settings, "login_password", "secret")
        response = client.post("/api/v1/sessions/login", json={})
        assert response.json()["success"] is True

    def test_login_without_credentials(self, client, monkeypatch):
        """Test login without any credentials is a 400."""
        monkeypatch.setattr(settings, "login_username", None)
        monkeypatch.setattr(settings, "login_password", None)
        response = client.post("/api/v1/sessions/login", json={})
        assert response.status_code == 400

    def test_reset(self, client):
        """Test reset clears an established session."""
        client.post("/api/v1/sessions/bypass", json={})
        response = client.post("/api/v1/sessions/reset", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["session_valid"] is False
        assert data["cookie_count"] == 0
        assert data["last_debug"] is None

    def test_status_does_not_create_sessions(self, client, registry):
        """Test asking about an unknown origin leaves the registry untouched."""
        for i in range(5):
            response = client.get(
                "/api/v1/sessions/status", params={"origin": f"https://site{i}.test"}
            )
            assert response.status_code == 200
            assert response.json()["state"] == "unchallenged"

        assert registry.sessions() == []

    def test_reset_unknown_origin(self, client, registry):
        """Test resetting an origin with no session is a 404."""
        response = client.post("/api/v1/sessions/reset", json={"origin": "https://unknown.test"})
        assert response.status_code == 404
        assert registry.find("https://unknown.test") is None


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
