import pytest
from fastapi.testclient import TestClient

from sgcaptcha.config import settings
from sgcaptcha.main import app
from sgcaptcha.middleware.rate_limit import limiter
from sgcaptcha.services.challenge_service import CaptchaSession
from sgcaptcha.services.session_registry import SessionRegistry, get_registry
from tests.test_utils import ORIGIN, FakeOrigin


@pytest.fixture
def fake_origin():
    """A challenge-protected origin served through httpx.MockTransport."""
    return FakeOrigin()


@pytest.fixture
def captcha_session(fake_origin):
    """A CaptchaSession wired to the fake origin."""
    return CaptchaSession(ORIGIN, transport=fake_origin.transport)


@pytest.fixture
def registry(fake_origin):
    return SessionRegistry(transport=fake_origin.transport)


@pytest.fixture
def client(registry, monkeypatch):
    """Test client with the fake origin, no rate limiting and no scheduler."""
    monkeypatch.setattr(settings, "base_origin", ORIGIN)
    monkeypatch.setattr(settings, "session_refresh_enabled", False)
    app.dependency_overrides[get_registry] = lambda: registry

    # Disable rate limiting for tests
    limiter.enabled = False

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
